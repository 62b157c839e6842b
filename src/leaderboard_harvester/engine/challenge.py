"""Interstitial verification ("challenge") detection and bounded resolution.

State machine::

    NORMAL ──detect──> DETECTED ──> RESOLVING ──clear──> RESOLVED
                                        │
                                        └─budget spent + one reload─> FAILED

FAILED is an outcome, not an exception: the orchestrator still extracts
(usually nothing) and flags the result as ``challengeUnresolved``.
"""
import logging
import math
from dataclasses import dataclass, field
from enum import Enum

from ..human import DelayPolicy, HumanDelay, human_click
from .snapshots import capture_snapshot

log = logging.getLogger(__name__)

CHALLENGE_TITLE_PHRASES = ("verification", "captcha", "just a moment", "please wait")

CHALLENGE_MARKERS = (
    '[data-testid="challenge-stage"]',
    ".challenge-stage",
    ".cf-challenge-stage",
)

CHALLENGE_CONTROLS = (
    "button",
    'input[type="checkbox"]',
    'input[type="submit"]',
    'input[type="button"]',
    "a",
    '[role="button"]',
    ".challenge-button",
    ".verify-button",
    ".continue-button",
)

CONTROL_WORDS = ("human", "robot", "continue", "proceed", "verify")


class ChallengeState(Enum):
    NORMAL = "normal"
    DETECTED = "detected"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class ChallengeOutcome:
    state: ChallengeState
    rounds: int = 0
    clicks: int = 0
    reloaded: bool = False
    auto_cleared: bool = False
    title: str = ""
    transitions: list[ChallengeState] = field(default_factory=list)

    @property
    def detected(self) -> bool:
        return self.state is not ChallengeState.NORMAL

    @property
    def unresolved(self) -> bool:
        return self.state is ChallengeState.FAILED


def title_looks_challenged(title: str) -> bool:
    lowered = (title or "").lower()
    return any(phrase in lowered for phrase in CHALLENGE_TITLE_PHRASES)


async def _safe_title(page) -> str:
    try:
        return (await page.title()) or ""
    except Exception as e:
        log.debug("page.title() failed: %s", e)
        return ""


async def _control_label(element) -> str:
    """Rendered text of a control, or its ``value``/``aria-label`` for inputs."""
    text = (await element.inner_text()) or ""
    if not text.strip():
        text = (await element.get_attribute("value")) or (await element.get_attribute("aria-label")) or ""
    return text.strip().lower()


class ChallengeHandler:
    """Detects a challenge page and tries to clear it within a fixed budget.

    Non-interactive checks usually finish on their own, so the handler first
    polls for up to ``auto_clear_seconds`` without touching the page. Then
    each round clicks at most one control (a checkbox, or a control whose
    visible text or value mentions human/robot/continue/proceed/verify),
    waits ``settle_seconds`` and re-checks. When ``max_rounds`` are spent the
    page is reloaded exactly once before giving up.
    """

    def __init__(
        self,
        *,
        delay: DelayPolicy | None = None,
        max_rounds: int = 3,
        settle_seconds: float = 2.0,
        auto_clear_seconds: float = 30.0,
        reload_timeout: float = 45.0,
        snapshot_dir: str = "",
    ):
        self.delay = delay or HumanDelay()
        self.max_rounds = max(0, int(max_rounds))
        self.settle_seconds = max(0.0, float(settle_seconds))
        self.auto_clear_seconds = max(0.0, float(auto_clear_seconds))
        self.reload_timeout = reload_timeout
        self.snapshot_dir = snapshot_dir

    async def detect(self, page) -> bool:
        """True when the title or a challenge-stage marker says "challenge"."""
        if title_looks_challenged(await _safe_title(page)):
            return True
        for selector in CHALLENGE_MARKERS:
            try:
                if await page.query_selector(selector) is not None:
                    return True
            except Exception as e:
                log.debug("Marker check %s failed: %s", selector, e)
        return False

    async def run(self, page) -> ChallengeOutcome:
        outcome = ChallengeOutcome(state=ChallengeState.NORMAL)
        if not await self.detect(page):
            outcome.title = await _safe_title(page)
            return outcome

        self._move(outcome, ChallengeState.DETECTED)
        outcome.title = await _safe_title(page)
        log.warning("Challenge page detected (title=%r)", outcome.title)
        await capture_snapshot(page, "challenge_detected", self.snapshot_dir)

        self._move(outcome, ChallengeState.RESOLVING)
        if await self._await_auto_clear(page):
            outcome.auto_cleared = True
            return await self._resolved(outcome, page)

        for _ in range(self.max_rounds):
            outcome.rounds += 1
            if await self._click_control(page):
                outcome.clicks += 1
            await self._settle()
            if not await self.detect(page):
                return await self._resolved(outcome, page)

        log.info("Challenge still present after %d rounds; reloading once", outcome.rounds)
        outcome.reloaded = True
        try:
            await page.reload(wait_until="networkidle", timeout=self.reload_timeout * 1000)
        except Exception as e:
            log.warning("Reload during challenge failed: %s", e)
        await self._settle()
        if not await self.detect(page):
            return await self._resolved(outcome, page)

        self._move(outcome, ChallengeState.FAILED)
        outcome.title = await _safe_title(page)
        log.warning("Challenge unresolved after %d rounds and a reload", outcome.rounds)
        await capture_snapshot(page, "challenge_failed", self.snapshot_dir)
        return outcome

    @staticmethod
    def _move(outcome: ChallengeOutcome, state: ChallengeState) -> None:
        outcome.state = state
        outcome.transitions.append(state)

    async def _resolved(self, outcome: ChallengeOutcome, page) -> ChallengeOutcome:
        self._move(outcome, ChallengeState.RESOLVED)
        outcome.title = await _safe_title(page)
        log.info("Challenge cleared after %d round(s)", outcome.rounds)
        return outcome

    async def _settle(self) -> None:
        await self.delay.wait(self.settle_seconds, self.settle_seconds * 1.5)

    async def _await_auto_clear(self, page) -> bool:
        """Poll ``detect`` without interacting. True once the challenge is gone."""
        if self.auto_clear_seconds <= 0:
            return False
        interval = self.settle_seconds or 1.0
        polls = max(1, math.ceil(self.auto_clear_seconds / interval))
        log.info("Waiting up to %.0fs for the challenge to clear by itself", self.auto_clear_seconds)
        for _ in range(polls):
            await self.delay.wait(interval, interval)
            if not await self.detect(page):
                return True
        return False

    async def _click_control(self, page) -> bool:
        """Click the first qualifying control. Returns True if something was clicked."""
        try:
            elements = await page.query_selector_all(", ".join(CHALLENGE_CONTROLS))
        except Exception as e:
            log.debug("Challenge control lookup failed: %s", e)
            return False
        for element in elements:
            try:
                kind = ((await element.get_attribute("type")) or "").lower()
                text = await _control_label(element)
                if kind != "checkbox" and not any(w in text for w in CONTROL_WORDS):
                    continue
                log.info("Clicking challenge control (%s)", text[:40] or kind)
                await human_click(page, element, self.delay)
                return True
            except Exception as e:
                log.debug("Challenge control interaction failed: %s", e)
        return False

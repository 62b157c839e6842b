"""Human-like timing and pointer behaviour for browser automation.

All waiting goes through a ``DelayPolicy`` so the anti-detection jitter can be
swapped for ``NoDelay`` in tests without touching production timing.
"""

import asyncio
import logging
import math
import random
from typing import Protocol, runtime_checkable

log = logging.getLogger(__name__)

# Track last known mouse position for Bezier curve start points.
# Initialized to viewport center; updated by bezier_move / human_click.
_last_mouse: dict[str, float] = {"x": 960.0, "y": 540.0}

# Buttons Chrome shows when a persistent profile was not shut down cleanly.
RESTORE_PROMPT_SELECTORS = (
    'button[aria-label="Restore"]',
    'button[aria-label="Don\'t restore"]',
    '[data-testid="restore-dismiss"]',
    ".infobar button",
    ".restore-bar button",
)
_RESTORE_WORDS = ("restore", "cancel", "not now")


def _safe_float(val, default: float) -> float:
    try:
        f = float(val)
        if math.isfinite(f):
            return f
    except (TypeError, ValueError):
        pass
    return default


@runtime_checkable
class DelayPolicy(Protocol):
    """Single-operation timing policy: wait somewhere between low and high seconds."""

    async def wait(self, low: float, high: float | None = None) -> None:
        ...


class HumanDelay:
    """Log-normal distributed waits between low and high.

    Log-normal matches human reaction times: mostly quick responses with
    occasional longer pauses. With ``distraction_rate`` > 0 a wait
    occasionally gets an extra 2-6s "distraction" pause.

    sigma controls variance (higher = more spread):
      0.2 = tight (page load waits)
      0.3 = moderate (default, UI interactions)
      0.5 = wide (reading/browsing pauses)
    """

    def __init__(self, sigma: float = 0.3, distraction_rate: float = 0.0):
        self.sigma = max(0.01, _safe_float(sigma, 0.3))
        self.distraction_rate = max(0.0, _safe_float(distraction_rate, 0.0))

    def sample(self, low: float, high: float | None = None) -> float:
        low = _safe_float(low, 0.05)
        high = _safe_float(high, low) if high is not None else low
        if high < low:
            low, high = high, low
        low = max(low, 0.001)
        high = max(high, low)
        if high == low:
            return low
        mid = max((low + high) / 2, 0.001)
        delay = random.lognormvariate(math.log(mid), self.sigma)
        # Clamp to reasonable range (0.5x low to 2x high)
        delay = max(low * 0.5, min(delay, high * 2))
        if random.random() < self.distraction_rate:
            delay += random.uniform(2, 6)
        return delay

    async def wait(self, low: float, high: float | None = None) -> None:
        delay = self.sample(low, high)
        log.debug("    sleep %.1fs", delay)
        await asyncio.sleep(delay)


class NoDelay:
    """Deterministic zero-delay policy. Records requested waits for inspection."""

    def __init__(self):
        self.calls: list[tuple[float, float | None]] = []

    async def wait(self, low: float, high: float | None = None) -> None:
        self.calls.append((low, high))


# ---------------------------------------------------------------------------
# Bezier curve mouse movement
# ---------------------------------------------------------------------------

def _cubic_bezier(t: float, p0: float, p1: float, p2: float, p3: float) -> float:
    """Evaluate cubic Bezier at parameter t in [0, 1]."""
    u = 1 - t
    return u * u * u * p0 + 3 * u * u * t * p1 + 3 * u * t * t * p2 + t * t * t * p3


async def bezier_move(page, to_x: float, to_y: float, delay: DelayPolicy) -> None:
    """Move mouse along a cubic Bezier curve from current position to target.

    Two random control points give a natural arc, Gaussian micro-jitter
    simulates hand tremor, and timing is slow at the ends and fast in the
    middle.
    """
    if not page or not hasattr(page, "mouse"):
        return
    to_x = _safe_float(to_x, _last_mouse["x"])
    to_y = _safe_float(to_y, _last_mouse["y"])
    from_x, from_y = _last_mouse["x"], _last_mouse["y"]
    dx = to_x - from_x
    dy = to_y - from_y
    dist = math.hypot(dx, dy)

    if dist < 10:
        await page.mouse.move(to_x, to_y)
        _last_mouse["x"], _last_mouse["y"] = to_x, to_y
        return

    cp1_x = from_x + dx * random.uniform(0.2, 0.4) + random.uniform(-50, 50)
    cp1_y = from_y + dy * random.uniform(0.1, 0.3) + random.uniform(-30, 30)
    cp2_x = from_x + dx * random.uniform(0.6, 0.8) + random.uniform(-50, 50)
    cp2_y = from_y + dy * random.uniform(0.7, 0.9) + random.uniform(-30, 30)

    steps = max(12, min(30, int(dist / 20)))
    for i in range(steps + 1):
        t = i / steps
        x = _cubic_bezier(t, from_x, cp1_x, cp2_x, to_x)
        y = _cubic_bezier(t, from_y, cp1_y, cp2_y, to_y)
        # tremor shrinks near the target
        tremor = max(0.3, 1.5 * (1 - t))
        await page.mouse.move(x + random.gauss(0, tremor), y + random.gauss(0, tremor))
        speed = 4 * t * (1 - t)
        await delay.wait(0.005 / max(speed, 0.15), 0.018 / max(speed, 0.15))

    _last_mouse["x"], _last_mouse["y"] = to_x, to_y


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def seed_pointer(page, delay: DelayPolicy, moves: int = 3) -> int:
    """Perform a few pointer movements so input-derived fingerprints are non-empty.

    Returns the number of moves performed. Best-effort: a page that rejects
    mouse input is logged and left alone.
    """
    vs = getattr(page, "viewport_size", None) or {"width": 1920, "height": 1080}
    vw = max(100, int(_safe_float(vs.get("width"), 1920)))
    vh = max(100, int(_safe_float(vs.get("height"), 1080)))
    done = 0
    try:
        for _ in range(moves):
            x = random.randint(int(vw * 0.05), int(vw * 0.6))
            y = random.randint(int(vh * 0.05), int(vh * 0.6))
            await page.mouse.move(x, y, steps=random.randint(5, 15))
            _last_mouse["x"], _last_mouse["y"] = float(x), float(y)
            done += 1
            await delay.wait(0.1, 0.4)
    except Exception as e:
        log.debug("Pointer seeding stopped after %d moves: %s", done, e)
    return done


async def human_click(page, element, delay: DelayPolicy) -> None:
    """Click an element via Bezier curve mouse movement with random offset.

    Falls back to ``element.click()`` when the element has no usable box.
    """
    if not page or element is None:
        return
    box = await element.bounding_box()
    if not box:
        await element.click()
        log.debug("    click (no box, fallback)")
        return
    bw = _safe_float(box.get("width"), 0.0)
    bh = _safe_float(box.get("height"), 0.0)
    if bw <= 0 or bh <= 0:
        await element.click()
        log.debug("    click (invalid box, fallback)")
        return
    bx = _safe_float(box.get("x"), 0.0)
    by = _safe_float(box.get("y"), 0.0)
    target_x = bx + bw / 2 + random.uniform(-0.3, 0.3) * bw
    target_y = by + bh / 2 + random.uniform(-0.3, 0.3) * bh
    await bezier_move(page, target_x, target_y, delay)
    await delay.wait(0.05, 0.15)
    await page.mouse.click(target_x, target_y)
    log.debug("    click (%.0f,%.0f) bezier", target_x, target_y)


async def dismiss_restore_prompt(page, delay: DelayPolicy) -> str:
    """Dismiss Chrome's "restore pages?" prompt if a persistent profile shows one.

    Clicks the first restore-bar button whose text mentions restore/cancel/
    not now; otherwise presses Escape to close any stray dialog. Returns the
    method used ("button", "escape" or "" when the page refused input).
    """
    for selector in RESTORE_PROMPT_SELECTORS:
        try:
            elements = await page.query_selector_all(selector)
        except Exception:
            continue
        for element in elements:
            try:
                text = ((await element.text_content()) or "").lower()
                label = ((await element.get_attribute("aria-label")) or "").lower()
                if any(w in text or w in label for w in _RESTORE_WORDS):
                    log.info("Dismissing restore prompt (%s)", text.strip() or label)
                    await element.click()
                    await delay.wait(0.8, 1.2)
                    return "button"
            except Exception as e:
                log.debug("Restore prompt candidate failed: %s", e)
    try:
        await page.keyboard.press("Escape")
        await delay.wait(0.3, 0.6)
        return "escape"
    except Exception as e:
        log.debug("Escape press failed: %s", e)
        return ""

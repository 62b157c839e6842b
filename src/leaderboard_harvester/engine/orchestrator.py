"""Orchestrator: arbitrates between live scraping, the cache and the store.

``get_data`` is the read path every caller uses. At most one live refresh
runs at a time; callers that arrive while one is in flight await the same
task and see the same entries or the same exception.
"""
import asyncio
import logging
from datetime import datetime, timezone

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import DEFAULT_CACHE_KEY, DEFAULT_CACHE_TTL_SECONDS
from ..human import DelayPolicy, HumanDelay, dismiss_restore_prompt
from ..models import LeaderboardEntry, ScrapeResult
from .challenge import ChallengeHandler, title_looks_challenged
from .errors import CacheError, ExtractionEmpty, NavigationTimeout, StoreError
from .extraction import extract_leaderboard, wait_for_content
from .snapshots import capture_snapshot

log = logging.getLogger(__name__)

# Titles that mark an error page rather than an empty leaderboard.
ERROR_TITLE_PHRASES = ("404", "not found", "error", "access denied", "forbidden")


def empty_result_reason(result: ScrapeResult) -> str:
    """Why an empty result should count as a failure ("" when it is acceptable)."""
    if result.entries:
        return ""
    if result.challenge_unresolved:
        return "challenge unresolved"
    title = str(result.metadata.get("pageTitle") or "")
    lowered = title.lower()
    if title_looks_challenged(title) or any(p in lowered for p in ERROR_TITLE_PHRASES):
        return f"error page title {title!r}"
    return ""


class ScrapeOrchestrator:
    """Live scrape plus cache/store fallback with in-flight deduplication.

    Sole writer of the cache and the store. ``scrape()`` itself is not
    deduplicated; go through ``get_data``/``trigger_scrape``.
    """

    def __init__(
        self,
        *,
        session_manager,
        cache,
        store,
        target_url: str,
        challenge_handler: ChallengeHandler | None = None,
        delay: DelayPolicy | None = None,
        cache_key: str = DEFAULT_CACHE_KEY,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        navigation_timeout: float = 45.0,
        settle_delay: tuple[float, float] = (3.0, 6.0),
        content_wait_timeout: float = 15.0,
        snapshot_dir: str = "",
    ):
        self.session_manager = session_manager
        self.cache = cache
        self.store = store
        self.target_url = target_url
        self.delay = delay or HumanDelay(sigma=0.2)
        self.challenge_handler = challenge_handler or ChallengeHandler(
            delay=self.delay, snapshot_dir=snapshot_dir,
        )
        self.cache_key = cache_key
        self.cache_ttl_seconds = cache_ttl_seconds
        self.navigation_timeout = navigation_timeout
        self.settle_delay = settle_delay
        self.content_wait_timeout = content_wait_timeout
        self.snapshot_dir = snapshot_dir

        self.last_result: ScrapeResult | None = None
        self._inflight: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Live scrape
    # ------------------------------------------------------------------

    async def scrape(self) -> ScrapeResult:
        """One navigation + challenge + extraction cycle on a fresh page.

        Raises ``BrowserInitError``, ``NavigationTimeout`` or whatever the
        page raises mid-extraction. An unresolved challenge is reported in
        the metadata, not raised. The page is closed on every path.
        """
        await self.session_manager.ensure_session()
        page = await self.session_manager.new_page()
        try:
            log.info("Navigating to %s", self.target_url)
            try:
                await page.goto(
                    self.target_url,
                    wait_until="networkidle",
                    timeout=self.navigation_timeout * 1000,
                )
            except (PlaywrightTimeoutError, asyncio.TimeoutError) as e:
                raise NavigationTimeout(self.target_url, self.navigation_timeout) from e

            await self.delay.wait(*self.settle_delay)
            await dismiss_restore_prompt(page, self.delay)

            challenge = await self.challenge_handler.run(page)
            if not challenge.unresolved:
                await wait_for_content(page, self.content_wait_timeout)

            extraction = await extract_leaderboard(page)
            result = ScrapeResult(
                entries=extraction.entries,
                source_url=self.target_url,
                scraped_at=datetime.now(timezone.utc),
                metadata={
                    "pageTitle": extraction.page_title or challenge.title,
                    "pageUrl": extraction.page_url or self.target_url,
                    "userAgent": extraction.user_agent,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "challengeDetected": challenge.detected,
                    "challengeUnresolved": challenge.unresolved,
                    "challengeRounds": challenge.rounds,
                    "selector": extraction.selector,
                    "matchCount": extraction.match_count,
                    "dropped": extraction.dropped,
                    "launchStrategy": self.session_manager.launch_strategy,
                },
            )
            if not result.entries:
                log.warning("No leaderboard rows found (selector=%r, title=%r)",
                            extraction.selector, result.metadata["pageTitle"])
                await capture_snapshot(page, "zero_results", self.snapshot_dir)
            log.info("Scraped %d entries from %s", result.total_entries, self.target_url)
            return result
        finally:
            try:
                await page.close()
            except Exception as e:
                log.debug("Page close failed: %s", e)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def get_data(self, force_refresh: bool = False) -> list[LeaderboardEntry]:
        if not force_refresh:
            cached = await self._cache_get()
            if cached is not None:
                log.debug("Serving %d entries from cache", len(cached))
                return cached
        task = self._inflight
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._refresh())
            task.add_done_callback(self._clear_inflight)
            self._inflight = task
        else:
            log.info("Joining in-flight refresh")
        # shield: one caller being cancelled must not cancel the shared refresh
        return await asyncio.shield(task)

    async def trigger_scrape(self) -> list[LeaderboardEntry]:
        return await self.get_data(force_refresh=True)

    async def get_history(self, limit: int = 10) -> list[dict]:
        return await self.store.history(limit)

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
        # mark the exception retrieved even if every waiter was cancelled
        if not task.cancelled():
            task.exception()

    async def _refresh(self) -> list[LeaderboardEntry]:
        try:
            result = await self.scrape()
            reason = empty_result_reason(result)
            if reason:
                raise ExtractionEmpty(reason)
        except Exception as e:
            log.warning("Live scrape failed: %s", e)
            return await self._fallback(e)

        self.last_result = result
        try:
            await self.store.append(result)
        except StoreError as e:
            log.warning("Could not persist scrape result: %s", e)
        try:
            await self.cache.set(self.cache_key, result.entries, self.cache_ttl_seconds)
        except CacheError as e:
            log.warning("Could not cache scrape result: %s", e)
        return result.entries

    async def _fallback(self, error: Exception) -> list[LeaderboardEntry]:
        cached = await self._cache_get()
        if cached is not None:
            log.info("Falling back to %d cached entries", len(cached))
            return cached
        try:
            latest = await self.store.latest()
        except StoreError as e:
            log.error("Store fallback failed: %s", e)
            raise
        if latest is not None:
            log.info("Falling back to stored result from %s (%d entries)",
                     latest.scraped_at.isoformat(), latest.total_entries)
            return latest.entries
        raise error

    async def _cache_get(self) -> list[LeaderboardEntry] | None:
        try:
            return await self.cache.get(self.cache_key)
        except CacheError as e:
            log.warning("Cache read failed, treating as miss: %s", e)
            return None

"""Service wiring: one long-lived ``LeaderboardService`` per process.

``build_service`` is the only place that reads ``Settings``. Callers (an
HTTP layer, a CLI, tests) hold the returned instance by reference.
"""
import logging

from .browser.session import SessionManager
from .config import Settings, get_settings
from .engine.challenge import ChallengeHandler
from .engine.orchestrator import ScrapeOrchestrator
from .human import HumanDelay
from .models import LeaderboardEntry
from .scheduler import SchedulerState, ScrapeScheduler
from .storage.cache import MemoryCache, RedisCache
from .storage.store import SqlSnapshotStore

log = logging.getLogger(__name__)


class LeaderboardService:
    """Caller-facing surface over the orchestrator and the scheduler."""

    def __init__(
        self,
        *,
        orchestrator: ScrapeOrchestrator,
        scheduler: ScrapeScheduler,
        interval_minutes: int = 30,
    ):
        self.orchestrator = orchestrator
        self.scheduler = scheduler
        self.interval_minutes = interval_minutes

    async def startup(self) -> None:
        """Create the store schema, run the first refresh and arm the schedule."""
        create_schema = getattr(self.orchestrator.store, "create_schema", None)
        if create_schema is not None:
            await create_schema()
        await self.scheduler.initialize(self.interval_minutes)

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()
        await self.orchestrator.session_manager.shutdown()
        for resource in (self.orchestrator.cache, self.orchestrator.store):
            close = getattr(resource, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                log.warning("Failed to close %s cleanly: %s", type(resource).__name__, e)

    async def get_data(self, force_refresh: bool = False) -> list[LeaderboardEntry]:
        return await self.orchestrator.get_data(force_refresh)

    async def get_history(self, limit: int = 10) -> list[dict]:
        return await self.orchestrator.get_history(limit)

    async def trigger_scrape(self) -> list[LeaderboardEntry]:
        return await self.orchestrator.trigger_scrape()

    def scheduler_status(self) -> SchedulerState:
        return self.scheduler.status()

    def scheduler_start(self) -> bool:
        return self.scheduler.start()

    def scheduler_stop(self) -> bool:
        return self.scheduler.stop()


def build_service(settings: Settings | None = None) -> LeaderboardService:
    """Wire every component from *settings* (``get_settings()`` by default)."""
    settings = settings or get_settings()
    delay = HumanDelay()
    session_manager = SessionManager(
        headless=settings.headless,
        chrome_user_data_dir=settings.chrome_user_data_dir,
        chrome_profile=settings.chrome_profile,
        use_profile=settings.use_chrome_profile,
        cookies_path=settings.cookies_path,
        stealth_js_path=settings.stealth_js_path,
        chrome_version=settings.chrome_version,
        user_agent_template=settings.user_agent_template,
        viewport_width=settings.viewport_width,
        viewport_height=settings.viewport_height,
        viewport_jitter=settings.viewport_jitter,
        locale=settings.locale,
        launch_timeout=settings.launch_timeout_seconds,
        delay=delay,
    )
    cache = RedisCache.from_url(settings.redis_url) if settings.redis_url else MemoryCache()
    store = SqlSnapshotStore.from_url(settings.database_url)
    challenge_handler = ChallengeHandler(
        delay=delay,
        max_rounds=settings.challenge_max_rounds,
        settle_seconds=settings.challenge_settle_seconds,
        auto_clear_seconds=settings.challenge_auto_clear_seconds,
        reload_timeout=settings.navigation_timeout_seconds,
        snapshot_dir=settings.snapshot_dir,
    )
    orchestrator = ScrapeOrchestrator(
        session_manager=session_manager,
        cache=cache,
        store=store,
        target_url=settings.target_url,
        challenge_handler=challenge_handler,
        delay=delay,
        cache_key=settings.cache_key,
        cache_ttl_seconds=settings.cache_ttl_seconds,
        navigation_timeout=settings.navigation_timeout_seconds,
        settle_delay=(settings.settle_delay_min_seconds, settings.settle_delay_max_seconds),
        content_wait_timeout=settings.content_wait_timeout_seconds,
        snapshot_dir=settings.snapshot_dir,
    )
    return LeaderboardService(
        orchestrator=orchestrator,
        scheduler=ScrapeScheduler(orchestrator),
        interval_minutes=settings.scrape_interval_minutes,
    )

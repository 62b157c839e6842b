"""Shared browser session lifecycle and the page-preparation pipeline.

One ``SessionManager`` owns at most one browser per process. The browser
is launched lazily on first use and every scrape gets a fresh page from
it. All paths are runtime-injected, never derived from package location.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from ..engine.errors import BrowserInitError, SessionNotReady
from ..human import DelayPolicy, HumanDelay, seed_pointer
from .chrome import LaunchStrategy, build_launch_strategies, launch_first
from .cookies import apply_cookies, load_cookie_seed
from .stealth import install_stealth, override_user_agent
from .ua import DEFAULT_CHROME_VERSION, NAVIGATION_HEADERS, build_user_agent, jittered_viewport

log = logging.getLogger(__name__)


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSED = "closed"   # terminal


@dataclass
class BrowserSession:
    """The live browser: a context (always) and a browser (not for persistent profiles)."""
    context: Any
    browser: Any
    strategy: LaunchStrategy
    chrome_version: str
    user_agent: str
    cookies: list[dict] = field(default_factory=list)


def _default_playwright_factory():
    from playwright.async_api import async_playwright
    return async_playwright()


async def _close_quietly(obj, what: str) -> None:
    if obj is None:
        return
    try:
        await obj.close()
    except Exception as e:
        log.warning("Failed to close %s cleanly: %s", what, e)


class SessionManager:
    """Lazily launched, fingerprint-spoofed browser shared across scrapes.

    ``playwright_factory`` returns an object with an awaitable ``start()``
    (``async_playwright()`` by default) so tests can substitute a fake.
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        chrome_user_data_dir: str = "",
        chrome_profile: str = "Default",
        use_profile: bool = True,
        cookies_path: str = "",
        stealth_js_path: str = "",
        chrome_version: str = "",
        user_agent_template: str = "",
        viewport_width: int = 1920,
        viewport_height: int = 1080,
        viewport_jitter: int = 100,
        locale: str = "en-US",
        launch_timeout: float = 60.0,
        delay: DelayPolicy | None = None,
        strategies: list[LaunchStrategy] | None = None,
        playwright_factory: Callable[[], Any] | None = None,
    ):
        self.headless = headless
        self.chrome_user_data_dir = chrome_user_data_dir
        self.chrome_profile = chrome_profile
        self.use_profile = use_profile
        self.cookies_path = cookies_path
        self.stealth_js_path = stealth_js_path
        self.chrome_version = chrome_version
        self.user_agent_template = user_agent_template
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self.viewport_jitter = viewport_jitter
        self.locale = locale
        self.launch_timeout = launch_timeout
        self.delay = delay or HumanDelay()
        self._strategies = strategies
        self._playwright_factory = playwright_factory or _default_playwright_factory

        self._lock = asyncio.Lock()
        self._state = SessionState.UNINITIALIZED
        self._session: BrowserSession | None = None
        self._playwright = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> BrowserSession | None:
        return self._session

    @property
    def launch_strategy(self) -> str:
        """Name of the adopted launch strategy ("" before launch)."""
        return self._session.strategy.name if self._session else ""

    async def ensure_session(self) -> BrowserSession:
        """Return the ready session, launching it on first call.

        Concurrent callers share a single launch. Raises ``BrowserInitError``
        when every strategy fails and ``SessionNotReady`` after shutdown.
        """
        async with self._lock:
            if self._state is SessionState.CLOSED:
                raise SessionNotReady("browser session has been shut down")
            if self._session is not None:
                return self._session

            self._playwright = await self._playwright_factory().start()
            strategies = self._strategies or build_launch_strategies(
                user_data_dir=self.chrome_user_data_dir,
                profile_directory=self.chrome_profile,
                use_profile=self.use_profile,
            )
            outcome = await launch_first(
                self._playwright,
                strategies,
                headless=self.headless,
                timeout_ms=int(self.launch_timeout * 1000),
                viewport={"width": self.viewport_width, "height": self.viewport_height},
                locale=self.locale,
            )
            if not outcome.ok:
                await self._stop_playwright()
                raise BrowserInitError(outcome.failures)

            # Persistent contexts have no Browser object to ask for a version.
            version = self.chrome_version
            if not version and outcome.browser is not None:
                version = getattr(outcome.browser, "version", "") or ""
            user_agent = build_user_agent(version, self.user_agent_template)
            cookies = load_cookie_seed(self.cookies_path)
            if cookies:
                log.info("Loaded %d seed cookies from %s", len(cookies), self.cookies_path)

            self._session = BrowserSession(
                context=outcome.context,
                browser=outcome.browser,
                strategy=outcome.strategy,
                chrome_version=version,
                user_agent=user_agent,
                cookies=cookies,
            )
            self._state = SessionState.READY
            log.info("Browser session ready (%s, Chrome %s)",
                     outcome.strategy.name, version or "unknown")
            return self._session

    async def new_page(self):
        """Open a page on the shared session and run the preparation pipeline.

        Order: user agent, jittered viewport, navigation headers, seed cookies,
        before-load stealth script, pointer seeding. The caller owns the page
        and must close it.
        """
        if self._state is not SessionState.READY or self._session is None:
            raise SessionNotReady()
        session = self._session
        page = await session.context.new_page()
        try:
            accept_language = f"{self.locale},{self.locale.split('-')[0]}"
            headers = dict(NAVIGATION_HEADERS)
            if not await override_user_agent(page, session.context, session.user_agent, accept_language):
                headers["User-Agent"] = session.user_agent
            await page.set_viewport_size(jittered_viewport(
                self.viewport_width, self.viewport_height, self.viewport_jitter,
            ))
            await page.set_extra_http_headers(headers)
            await apply_cookies(session.context, session.cookies)
            await install_stealth(
                page,
                session.chrome_version or DEFAULT_CHROME_VERSION,
                self.stealth_js_path,
                languages=(self.locale, self.locale.split("-")[0]),
                screen_width=self.viewport_width,
                screen_height=self.viewport_height,
            )
            await seed_pointer(page, self.delay)
        except Exception:
            await _close_quietly(page, "page")
            raise
        return page

    async def shutdown(self) -> None:
        """Close the browser and stop Playwright. Idempotent; the manager stays closed."""
        async with self._lock:
            if self._state is SessionState.CLOSED:
                return
            session, self._session = self._session, None
            self._state = SessionState.CLOSED
            if session is not None:
                await _close_quietly(session.context, "browser context")
                await _close_quietly(session.browser, "browser")
            await self._stop_playwright()
            log.info("Browser session closed")

    async def _stop_playwright(self) -> None:
        pw, self._playwright = self._playwright, None
        if pw is None:
            return
        try:
            await pw.stop()
        except Exception as e:
            log.warning("Failed to stop Playwright cleanly: %s", e)

"""Chrome discovery and ordered launch strategies.

Strategies are plain descriptors evaluated lazily in priority order; the
first one that launches is adopted and the rest are never tried.
"""
import logging
import os
import platform
import shutil
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger(__name__)

# Shared by every strategy.
ANTI_AUTOMATION_ARGS = (
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
    "--no-first-run",
    "--no-default-browser-check",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--force-color-profile=srgb",
    "--disable-breakpad",
    "--disable-crash-reporter",
    "--disable-domain-reliability",
    "--disable-component-update",
    "--disable-background-networking",
    "--disable-sync",
    "--disable-session-crashed-bubble",
    "--hide-crash-restore-bubble",
    "--disable-restore-session-state",
    "--window-size=1920,1080",
)

# Playwright adds --enable-automation by default; dropping it removes the banner.
IGNORED_DEFAULT_ARGS = ("--enable-automation",)


def find_system_chrome() -> str | None:
    """Find a Chrome or Chromium binary on the system.

    Returns the path to the browser executable, or None if not found.
    """
    system = platform.system()
    if system == "Darwin":
        candidates = [
            "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
            "/Applications/Google Chrome Canary.app/Contents/MacOS/Google Chrome Canary",
            "/Applications/Chromium.app/Contents/MacOS/Chromium",
        ]
    elif system == "Linux":
        candidates = [
            "google-chrome",
            "google-chrome-stable",
            "chromium-browser",
            "chromium",
        ]
    elif system == "Windows":
        local = os.environ.get("LOCALAPPDATA", "")
        candidates = [
            r"C:\Program Files\Google\Chrome\Application\chrome.exe",
            r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
            os.path.join(local, "Google", "Chrome", "Application", "chrome.exe") if local else "",
        ]
    else:
        return None

    for candidate in candidates:
        if not candidate:
            continue
        if os.path.isabs(candidate):
            if os.path.isfile(candidate):
                return candidate
        else:
            path = shutil.which(candidate)
            if path:
                return path
    return None


def default_user_data_dir() -> str:
    """Return the platform's default Chrome user-data directory ("" if unknown)."""
    home = os.path.expanduser("~")
    system = platform.system()
    if system == "Darwin":
        return os.path.join(home, "Library", "Application Support", "Google", "Chrome")
    if system == "Linux":
        return os.path.join(home, ".config", "google-chrome")
    if system == "Windows":
        return os.path.join(home, "AppData", "Local", "Google", "Chrome", "User Data")
    return ""


@dataclass(frozen=True)
class LaunchStrategy:
    """One way of getting a browser. Empty fields mean "let Playwright decide"."""
    name: str
    executable_path: str = ""
    channel: str = ""
    user_data_dir: str = ""      # non-empty → persistent profile
    profile_directory: str = ""

    @property
    def persistent(self) -> bool:
        return bool(self.user_data_dir)


@dataclass
class LaunchOutcome:
    """Result of walking the strategy list: the adopted strategy or every failure."""
    strategy: LaunchStrategy | None = None
    context: Any = None
    browser: Any = None
    failures: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.strategy is not None and self.context is not None


def build_launch_strategies(
    *,
    chrome_path: str | None = None,
    user_data_dir: str = "",
    profile_directory: str = "Default",
    use_profile: bool = True,
) -> list[LaunchStrategy]:
    """Build the ordered strategy catalogue.

    1. ``system-chrome-profile``: real Chrome + persistent profile (only when
       a binary and a profile directory are available).
    2. ``bundled-chromium``: Playwright's bundled browser, fresh profile.
    3. ``auto-detected``: whatever Playwright resolves for the ``chrome`` channel.
    """
    strategies: list[LaunchStrategy] = []
    chrome_path = chrome_path if chrome_path is not None else find_system_chrome()
    profile_root = user_data_dir or default_user_data_dir()
    if use_profile and chrome_path and profile_root:
        strategies.append(LaunchStrategy(
            name="system-chrome-profile",
            executable_path=chrome_path,
            user_data_dir=profile_root,
            profile_directory=profile_directory,
        ))
    strategies.append(LaunchStrategy(name="bundled-chromium"))
    strategies.append(LaunchStrategy(name="auto-detected", channel="chrome"))
    return strategies


async def _launch_one(
    playwright,
    strategy: LaunchStrategy,
    *,
    headless: bool,
    timeout_ms: int,
    viewport: dict,
    locale: str,
):
    args = list(ANTI_AUTOMATION_ARGS)
    if strategy.profile_directory:
        args.append(f"--profile-directory={strategy.profile_directory}")
    options: dict[str, Any] = {
        "headless": headless,
        "args": args,
        "ignore_default_args": list(IGNORED_DEFAULT_ARGS),
        "timeout": timeout_ms,
    }
    if strategy.executable_path:
        options["executable_path"] = strategy.executable_path
    if strategy.channel:
        options["channel"] = strategy.channel

    if strategy.persistent:
        os.makedirs(strategy.user_data_dir, exist_ok=True)
        context = await playwright.chromium.launch_persistent_context(
            strategy.user_data_dir,
            viewport=viewport,
            locale=locale,
            **options,
        )
        return None, context

    browser = await playwright.chromium.launch(**options)
    try:
        context = await browser.new_context(viewport=viewport, locale=locale)
    except Exception:
        await browser.close()
        raise
    return browser, context


async def launch_first(
    playwright,
    strategies: list[LaunchStrategy],
    *,
    headless: bool = True,
    timeout_ms: int = 60000,
    viewport: dict | None = None,
    locale: str = "en-US",
) -> LaunchOutcome:
    """Try *strategies* in order and stop at the first that launches.

    Never raises for launch failures; they are collected in
    ``LaunchOutcome.failures``.
    """
    outcome = LaunchOutcome()
    viewport = viewport or {"width": 1920, "height": 1080}
    for strategy in strategies:
        log.info("Launching browser via %s", strategy.name)
        try:
            browser, context = await _launch_one(
                playwright, strategy,
                headless=headless, timeout_ms=timeout_ms,
                viewport=viewport, locale=locale,
            )
        except Exception as e:
            reason = str(e).strip().splitlines()[0] if str(e).strip() else type(e).__name__
            log.warning("Launch strategy %s failed: %s", strategy.name, reason)
            outcome.failures.append((strategy.name, reason))
            continue
        outcome.strategy = strategy
        outcome.browser = browser
        outcome.context = context
        log.info("Browser ready via %s", strategy.name)
        break
    return outcome

"""Normalized error signals for the leaderboard harvester.

Every failure the core raises is a ``ScraperError`` carrying a
``ScraperSignal`` so the orchestrator's fallback chain can treat them
uniformly. A challenge that could not be cleared is *not* an exception;
it travels as ``metadata["challengeUnresolved"]`` on the scrape result.
"""
from enum import Enum


class ScraperSignal(Enum):
    """Normalized error signals raised by the harvester core."""
    BROWSER_INIT = "browser_init"         # no launch strategy succeeded
    SESSION_NOT_READY = "session_not_ready"
    NAVIGATION_TIMEOUT = "navigation_timeout"
    EXTRACTION_EMPTY = "extraction_empty"  # zero rows plus a blocked/error page
    CACHE = "cache"                       # non-fatal, treated as a miss
    STORE = "store"                       # fatal only as the last resort


class ScraperError(Exception):
    """Exception carrying a normalized ScraperSignal."""

    def __init__(self, signal: ScraperSignal, message: str = ""):
        self.signal = signal
        super().__init__(message or signal.value)


class BrowserInitError(ScraperError):
    """Every launch strategy failed.

    ``failures`` holds ``(strategy_name, reason)`` pairs in the order the
    strategies were attempted.
    """

    def __init__(self, failures: list[tuple[str, str]]):
        self.failures = list(failures)
        tried = "; ".join(f"{name}: {reason}" for name, reason in self.failures)
        super().__init__(
            ScraperSignal.BROWSER_INIT,
            f"no browser launch strategy succeeded ({tried or 'none configured'})",
        )


class SessionNotReady(ScraperError):
    def __init__(self, message: str = "browser session is not ready"):
        super().__init__(ScraperSignal.SESSION_NOT_READY, message)


class NavigationTimeout(ScraperError):
    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout
        super().__init__(
            ScraperSignal.NAVIGATION_TIMEOUT,
            f"{url} did not load within {timeout:g}s",
        )


class ExtractionEmpty(ScraperError):
    """Zero rows extracted from a page that looks blocked or broken."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(ScraperSignal.EXTRACTION_EMPTY, f"no leaderboard rows ({reason})")


class CacheError(ScraperError):
    def __init__(self, message: str = ""):
        super().__init__(ScraperSignal.CACHE, message)


class StoreError(ScraperError):
    def __init__(self, message: str = ""):
        super().__init__(ScraperSignal.STORE, message)

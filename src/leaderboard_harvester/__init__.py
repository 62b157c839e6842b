"""leaderboard-harvester: resilient scraping of a JavaScript-rendered leaderboard.

Provides a fingerprint-spoofed browser session, challenge handling, scored
heuristic extraction, and an orchestrator that falls back to a cache and a
durable store when live scraping fails.
"""
from .engine.errors import ScraperSignal, ScraperError  # noqa: F401
from .models import LeaderboardEntry, ScrapeResult  # noqa: F401
from .app import LeaderboardService, build_service  # noqa: F401

"""engine: challenge handling, extraction, snapshots and orchestration."""
from .errors import (  # noqa: F401
    ScraperSignal,
    ScraperError,
    BrowserInitError,
    SessionNotReady,
    NavigationTimeout,
    ExtractionEmpty,
    CacheError,
    StoreError,
)
from .challenge import ChallengeHandler, ChallengeOutcome, ChallengeState  # noqa: F401
from .extraction import CandidateSelector, ExtractionResult, best_candidate, extract_leaderboard  # noqa: F401
from .snapshots import Snapshot, capture_snapshot  # noqa: F401
from .orchestrator import ScrapeOrchestrator  # noqa: F401

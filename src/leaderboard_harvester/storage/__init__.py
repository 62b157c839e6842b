"""storage: leaderboard cache and durable snapshot history."""
from .cache import LeaderboardCache, RedisCache, MemoryCache  # noqa: F401
from .store import SnapshotStore, SqlSnapshotStore  # noqa: F401

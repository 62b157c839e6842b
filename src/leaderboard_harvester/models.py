"""Leaderboard data model shared by the engine, the cache and the store."""
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class LeaderboardEntry:
    rank: int
    username: str
    score: float
    # raw matched text + selector/strategy, for diagnostics only
    provenance: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "LeaderboardEntry":
        return cls(
            rank=int(data["rank"]),
            username=str(data["username"]),
            score=float(data["score"]),
            provenance=dict(data.get("provenance") or {}),
        )

    @property
    def is_valid(self) -> bool:
        """True when the entry satisfies the row invariants.

        rank is a positive integer, username is non-empty, and both rank and
        score are finite numbers.
        """
        if not self.username:
            return False
        if not math.isfinite(self.score) or not math.isfinite(self.rank):
            return False
        return self.rank > 0


def sort_entries(entries: list[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """Stable ascending sort by rank. Duplicate ranks keep page order."""
    return sorted(entries, key=lambda e: e.rank)


@dataclass
class ScrapeResult:
    entries: list[LeaderboardEntry]
    source_url: str
    scraped_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def total_entries(self) -> int:
        return len(self.entries)

    @property
    def challenge_unresolved(self) -> bool:
        return bool(self.metadata.get("challengeUnresolved"))

    def to_dict(self) -> dict:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "totalEntries": self.total_entries,
            "scrapedAt": self.scraped_at.isoformat(),
            "sourceUrl": self.source_url,
            "metadata": dict(self.metadata),
        }


def entries_to_payload(entries: list[LeaderboardEntry]) -> list[dict]:
    return [e.to_dict() for e in entries]


def entries_from_payload(payload: list[dict]) -> list[LeaderboardEntry]:
    return [LeaderboardEntry.from_dict(item) for item in payload]

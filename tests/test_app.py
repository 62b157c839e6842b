"""Tests for settings loading and service wiring."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from leaderboard_harvester.app import LeaderboardService, build_service
from leaderboard_harvester.browser.session import SessionState
from leaderboard_harvester.config import Settings, get_settings
from leaderboard_harvester.engine.orchestrator import ScrapeOrchestrator
from leaderboard_harvester.models import LeaderboardEntry
from leaderboard_harvester.storage.cache import MemoryCache, RedisCache
from leaderboard_harvester.storage.store import SqlSnapshotStore


def test_settings_defaults(monkeypatch):
    for name in ("TARGET_URL", "SCRAPE_INTERVAL_MINUTES", "REDIS_URL", "CHROME_PROFILE"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None)
    assert settings.target_url == "https://yaps.kaito.ai/yapper-leaderboards"
    assert settings.scrape_interval_minutes == 30
    assert settings.cache_key == "leaderboard_data"
    assert settings.cache_ttl_seconds == 1800
    assert settings.navigation_timeout_seconds == 45.0
    assert settings.chrome_profile == "Default"
    assert settings.challenge_auto_clear_seconds == 30.0


def test_orchestrator_cache_defaults_match_settings():
    orch = ScrapeOrchestrator(session_manager=MagicMock(), cache=MagicMock(), store=MagicMock(),
                              target_url="https://example.com/board")
    settings = Settings(_env_file=None)
    assert orch.cache_key == settings.cache_key
    assert orch.cache_ttl_seconds == settings.cache_ttl_seconds


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("TARGET_URL", "https://example.com/board")
    monkeypatch.setenv("SCRAPE_INTERVAL_MINUTES", "10")
    monkeypatch.setenv("CHROME_USER_DATA_DIR", "/tmp/chrome-data")
    monkeypatch.setenv("HEADLESS", "false")
    settings = Settings(_env_file=None)
    assert settings.target_url == "https://example.com/board"
    assert settings.scrape_interval_minutes == 10
    assert settings.chrome_user_data_dir == "/tmp/chrome-data"
    assert settings.headless is False


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()


def _settings(tmp_path, **overrides):
    values = dict(
        redis_url="",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'board.db'}",
        target_url="https://example.com/board",
        scrape_interval_minutes=12,
        snapshot_dir=str(tmp_path / "snapshots"),
        challenge_max_rounds=5,
        challenge_auto_clear_seconds=12.5,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_build_service_wires_components(tmp_path):
    service = build_service(_settings(tmp_path))
    assert isinstance(service, LeaderboardService)
    orch = service.orchestrator
    assert isinstance(orch.cache, MemoryCache)
    assert isinstance(orch.store, SqlSnapshotStore)
    assert orch.target_url == "https://example.com/board"
    assert orch.challenge_handler.max_rounds == 5
    assert orch.challenge_handler.auto_clear_seconds == 12.5
    assert orch.challenge_handler.snapshot_dir == str(tmp_path / "snapshots")
    assert service.scheduler.orchestrator is orch
    assert service.interval_minutes == 12
    assert orch.session_manager.state is SessionState.UNINITIALIZED


def test_build_service_with_redis_url(tmp_path):
    service = build_service(_settings(tmp_path, redis_url="redis://localhost:6379/0"))
    assert isinstance(service.orchestrator.cache, RedisCache)


@pytest.mark.asyncio
async def test_service_lifecycle_and_delegation(tmp_path):
    service = build_service(_settings(tmp_path))
    service.scheduler.initialize = AsyncMock()
    entries = [LeaderboardEntry(rank=1, username="alice", score=1.0)]
    service.orchestrator.get_data = AsyncMock(return_value=entries)

    await service.startup()
    service.scheduler.initialize.assert_awaited_once_with(12)
    assert await service.get_history() == []

    assert await service.get_data() is entries
    assert await service.trigger_scrape() is entries
    service.orchestrator.get_data.assert_any_await(force_refresh=True)
    assert service.scheduler_start() is False

    await service.shutdown()
    assert service.orchestrator.session_manager.state is SessionState.CLOSED

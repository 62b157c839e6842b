"""Tests for extraction normalizers, selector scoring and the in-page script."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from leaderboard_harvester.engine.extraction import (
    EXTRACTION_SCRIPT,
    FIELD_STRATEGIES,
    SELECTOR_CATALOGUE,
    CandidateSelector,
    best_candidate,
    candidates_from_counts,
    clean_username,
    coerce_rows,
    extract_leaderboard,
    parse_rank,
    parse_score,
    wait_for_content,
)


def test_parse_score_thousand_separators():
    assert parse_score("1,234 pts") == 1234.0
    assert parse_score("12,345.67") == 12345.67
    assert parse_score("Score: 88.5%") == 88.5


def test_parse_score_defaults_to_zero():
    assert parse_score("n/a") == 0.0
    assert parse_score("") == 0.0


def test_parse_rank_digits_only():
    assert parse_rank("#7", 3) == 7
    assert parse_rank("1st", 9) == 1


def test_parse_rank_falls_back_to_position():
    assert parse_rank("—", 4) == 4
    assert parse_rank("", 2) == 2
    assert parse_rank("0", 5) == 5


def test_clean_username():
    assert clean_username("  @alice_01!  ") == "alice_01"
    assert clean_username("Bob Smith-Jr.") == "Bob Smith-Jr."
    assert clean_username("🔥🔥") == ""


def test_best_candidate_picks_larger_count():
    cands = [
        CandidateSelector(pattern="a", priority=0, match_count=3),
        CandidateSelector(pattern="b", priority=1, match_count=10),
    ]
    assert best_candidate(cands).pattern == "b"


def test_best_candidate_tie_goes_to_earlier_entry():
    cands = [
        CandidateSelector(pattern="later", priority=5, match_count=10),
        CandidateSelector(pattern="earlier", priority=2, match_count=10),
    ]
    assert best_candidate(cands).pattern == "earlier"


def test_best_candidate_nothing_matched():
    assert best_candidate(candidates_from_counts([0] * len(SELECTOR_CATALOGUE))) is None
    assert best_candidate([]) is None


def test_candidates_from_counts_pads_missing():
    cands = candidates_from_counts([4])
    assert len(cands) == len(SELECTOR_CATALOGUE)
    assert cands[0].match_count == 4
    assert cands[1].match_count == 0


def test_coerce_rows_drops_invalid_and_sorts():
    rows = [
        {"rank": 2, "username": "bob", "score": 500},
        {"rank": 1, "username": "", "score": 900},
        {"rank": 3, "username": "carol", "score": float("inf")},
        {"rank": "#1", "username": "alice", "score": 900},
        {"username": "missing-rank", "score": 1},
    ]
    entries, rejected = coerce_rows(rows)
    assert [(e.rank, e.username, e.score) for e in entries] == [(1, "alice", 900.0), (2, "bob", 500.0)]
    assert rejected == 3


def test_coerce_rows_keeps_duplicate_ranks_in_page_order():
    entries, _ = coerce_rows([
        {"rank": 1, "username": "first", "score": 5},
        {"rank": 1, "username": "second", "score": 5},
    ])
    assert [e.username for e in entries] == ["first", "second"]


def test_script_embeds_catalogue_and_strategies():
    assert SELECTOR_CATALOGUE[0] == '[data-testid*="leaderboard"]'
    assert [s.name for s in FIELD_STRATEGIES] == ["data-attribute", "class-name", "table-columns", "nth-child"]
    assert "table[class*=\\\"leaderboard\\\"] tbody tr" in EXTRACTION_SCRIPT
    assert "td:nth-child(2)" in EXTRACTION_SCRIPT


@pytest.mark.asyncio
async def test_extract_leaderboard_with_evaluated_payload():
    counts = [0] * len(SELECTOR_CATALOGUE)
    counts[SELECTOR_CATALOGUE.index("tbody tr")] = 3
    page = MagicMock()
    page.evaluate = AsyncMock(return_value={
        "counts": counts,
        "selector": "tbody tr",
        "matchCount": 3,
        "rows": [
            {"rank": 1, "username": "alice", "score": 900, "provenance": {"strategy": "table-columns"}},
            {"rank": 2, "username": "bob", "score": 500, "provenance": {}},
        ],
        "dropped": 1,
        "pageTitle": "Leaderboard",
        "pageUrl": "https://example.com/board",
        "userAgent": "UA",
    })
    result = await extract_leaderboard(page)
    assert result.selector == "tbody tr"
    assert result.match_count == 3
    assert result.dropped == 1
    assert [e.username for e in result.entries] == ["alice", "bob"]
    assert result.entries[0].provenance["strategy"] == "table-columns"
    assert page.evaluate.call_args.args[0] == EXTRACTION_SCRIPT


@pytest.mark.asyncio
async def test_extract_leaderboard_empty_page():
    page = MagicMock()
    page.evaluate = AsyncMock(return_value={"counts": [0] * len(SELECTOR_CATALOGUE), "rows": []})
    result = await extract_leaderboard(page)
    assert result.entries == []
    assert result.match_count == 0
    assert result.selector == ""


@pytest.mark.asyncio
async def test_wait_for_content_timeout_is_not_an_error():
    page = MagicMock()
    page.wait_for_function = AsyncMock(side_effect=TimeoutError("15000ms exceeded"))
    assert await wait_for_content(page, 15) is False
    assert page.wait_for_function.call_args.kwargs["timeout"] == 15000


# -- real browser ------------------------------------------------------------

FIXTURE_HTML = """
<html><head><title>Leaderboard</title></head><body>
<table class="leaderboard">
  <thead><tr><th>Rank</th><th>User</th><th>Score</th></tr></thead>
  <tbody>
    <tr><td>#2</td><td>bob</td><td>500 pts</td></tr>
    <tr><td>#1</td><td>alice!</td><td>900 pts</td></tr>
    <tr><td>#3</td><td>carol</td><td>10 pts</td></tr>
  </tbody>
</table>
</body></html>
"""

CLASS_FIXTURE_HTML = """
<html><body>
<section class="board">
  <div class="leaderboard-entry"><span class="rank">1</span><span class="name">alpha</span><span class="points">1,234 pts</span></div>
  <div class="leaderboard-entry"><span class="rank">2</span><span class="name">✨</span><span class="points">99</span></div>
  <div class="leaderboard-entry"><span class="rank">?</span><span class="name">gamma</span><span class="points">n/a</span></div>
</section>
</body></html>
"""


@pytest.mark.browser
@pytest.mark.asyncio
async def test_end_to_end_table_fixture(chromium_page):
    await chromium_page.set_content(FIXTURE_HTML)
    result = await extract_leaderboard(chromium_page)
    assert [(e.rank, e.username, e.score) for e in result.entries] == [
        (1, "alice", 900.0),
        (2, "bob", 500.0),
        (3, "carol", 10.0),
    ]
    assert result.selector == 'table[class*="leaderboard"] tbody tr'
    assert result.match_count == 3
    assert result.entries[0].provenance["strategy"] == "table-columns"
    assert result.entries[0].provenance["rawRank"] == "#1"


@pytest.mark.browser
@pytest.mark.asyncio
async def test_end_to_end_class_fixture(chromium_page):
    await chromium_page.set_content(CLASS_FIXTURE_HTML)
    result = await extract_leaderboard(chromium_page)
    # empty-after-cleaning username is dropped; unparsable rank uses position
    assert [(e.rank, e.username, e.score) for e in result.entries] == [
        (1, "alpha", 1234.0),
        (3, "gamma", 0.0),
    ]
    assert result.dropped == 1
    assert result.entries[0].provenance["strategy"] == "class-name"

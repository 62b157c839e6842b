"""Heuristic leaderboard extraction.

The DOM work happens in one serialized script evaluated inside the page:
it scores a fixed catalogue of row selectors, picks the one with the most
matches (earlier entries win ties), pulls rank/username/score out of each
matched row with ordered field strategies, normalizes and sorts. The host
only receives structured rows, which it re-validates with the same rules
implemented here in Python.
"""
import json
import logging
import re
from dataclasses import dataclass, field

from ..models import LeaderboardEntry, sort_entries

log = logging.getLogger(__name__)

SELECTOR_CATALOGUE = (
    # attribute-based leaderboard markers
    '[data-testid*="leaderboard"]',
    '[data-testid*="ranking"]',
    # class-name heuristics
    ".leaderboard-item",
    ".ranking-item",
    ".leaderboard-entry",
    ".user-rank",
    ".rank-item",
    ".player-rank",
    ".score-item",
    ".user-entry",
    # table rows
    'table[class*="leaderboard"] tbody tr',
    'table[class*="ranking"] tbody tr',
    'table[class*="score"] tbody tr',
    "tbody tr",
    "table tr:not(:first-child)",
    # list items
    'ul[class*="leaderboard"] li',
    'ol[class*="ranking"] li',
    'ul[class*="users"] li',
    'ol[class*="players"] li',
    # generic
    'div[class*="rank"]',
    'div[class*="leaderboard"]',
    'div[class*="user"]',
    'div[class*="score"]',
    'div[class*="player"]',
    ".ranking-list > div",
    ".leaderboard-list > div",
)


@dataclass(frozen=True)
class FieldStrategy:
    name: str
    rank: str
    username: str
    score: str


FIELD_STRATEGIES = (
    FieldStrategy(
        name="data-attribute",
        rank='[data-testid*="rank"], [data-rank]',
        username='[data-testid*="username"], [data-testid*="user"], [data-testid*="name"], [data-user]',
        score='[data-testid*="score"], [data-testid*="points"], [data-score]',
    ),
    FieldStrategy(
        name="class-name",
        rank=".rank, .position, .number",
        username=".username, .user, .name, .player",
        score=".score, .points, .value",
    ),
    FieldStrategy(
        name="table-columns",
        rank="td:first-child, th:first-child",
        username="td:nth-child(2), th:nth-child(2)",
        score="td:last-child, th:last-child",
    ),
    FieldStrategy(
        name="nth-child",
        rank="div:first-child",
        username="div:nth-child(2)",
        score="div:last-child",
    ),
)

# Shared with the in-page script so both sides normalize identically.
USERNAME_STRIP_PATTERN = r"[^A-Za-z0-9 _.\-]"
SCORE_TOKEN_PATTERN = r"\d[\d,]*(?:\.\d+)?"

_USERNAME_STRIP = re.compile(USERNAME_STRIP_PATTERN)
_SCORE_TOKEN = re.compile(SCORE_TOKEN_PATTERN)
_NON_DIGITS = re.compile(r"\D")


@dataclass
class CandidateSelector:
    pattern: str
    priority: int       # position in SELECTOR_CATALOGUE, lower wins ties
    match_count: int = 0


@dataclass
class ExtractionResult:
    entries: list[LeaderboardEntry]
    selector: str = ""
    match_count: int = 0
    candidates: list[CandidateSelector] = field(default_factory=list)
    page_title: str = ""
    page_url: str = ""
    user_agent: str = ""
    dropped: int = 0


# ---------------------------------------------------------------------------
# Normalizers (mirrored by the in-page script)
# ---------------------------------------------------------------------------

def parse_rank(text: str, position: int) -> int:
    """Digits-only integer; the 1-based *position* when there are none (or only zeros)."""
    digits = _NON_DIGITS.sub("", text or "")
    rank = int(digits) if digits else 0
    return rank or position


def clean_username(text: str) -> str:
    return _USERNAME_STRIP.sub("", text or "").strip()


def parse_score(text: str) -> float:
    """First numeric token (thousand separators, optional decimals) as float, else 0."""
    match = _SCORE_TOKEN.search(text or "")
    if not match:
        return 0.0
    return float(match.group(0).replace(",", ""))


def best_candidate(candidates: list[CandidateSelector]) -> CandidateSelector | None:
    """Highest match count wins; ties go to the lower priority. None if nothing matched."""
    best = None
    for cand in sorted(candidates, key=lambda c: c.priority):
        if cand.match_count > 0 and (best is None or cand.match_count > best.match_count):
            best = cand
    return best


# ---------------------------------------------------------------------------
# In-page script
# ---------------------------------------------------------------------------

def build_extraction_script(
    catalogue: tuple[str, ...] = SELECTOR_CATALOGUE,
    strategies: tuple[FieldStrategy, ...] = FIELD_STRATEGIES,
) -> str:
    """Serialize the scoring + extraction logic into a single page function."""
    catalogue_js = json.dumps(list(catalogue))
    strategies_js = json.dumps([
        {"name": s.name, "rank": s.rank, "username": s.username, "score": s.score}
        for s in strategies
    ])
    return f"""
    () => {{
        const catalogue = {catalogue_js};
        const strategies = {strategies_js};
        const stripUser = new RegExp({json.dumps(USERNAME_STRIP_PATTERN)}, 'g');
        const scoreToken = new RegExp({json.dumps(SCORE_TOKEN_PATTERN)});

        const counts = catalogue.map((sel) => {{
            try {{
                return document.querySelectorAll(sel).length;
            }} catch (e) {{
                return 0;
            }}
        }});
        let best = -1;
        let bestCount = 0;
        counts.forEach((n, i) => {{
            if (n > bestCount) {{
                bestCount = n;
                best = i;
            }}
        }});

        const rows = [];
        let dropped = 0;
        if (best >= 0) {{
            const elements = Array.from(document.querySelectorAll(catalogue[best]));
            elements.forEach((el, index) => {{
                const pick = (sel) => {{
                    try {{
                        const node = el.querySelector(sel);
                        return node ? (node.textContent || '').trim() : '';
                    }} catch (e) {{
                        return '';
                    }}
                }};
                for (const strategy of strategies) {{
                    const rawRank = pick(strategy.rank);
                    const rawUsername = pick(strategy.username);
                    const rawScore = pick(strategy.score);
                    if (!rawRank || !rawUsername || !rawScore) {{
                        continue;
                    }}
                    const digits = rawRank.replace(/\\D/g, '');
                    const rank = (digits ? parseInt(digits, 10) : 0) || (index + 1);
                    const username = rawUsername.replace(stripUser, '').trim();
                    const token = rawScore.match(scoreToken);
                    const score = token ? parseFloat(token[0].replace(/,/g, '')) : 0;
                    if (username && Number.isFinite(rank) && Number.isFinite(score)) {{
                        rows.push({{
                            rank: rank,
                            username: username,
                            score: score,
                            provenance: {{
                                rawRank: rawRank,
                                rawUsername: rawUsername,
                                rawScore: rawScore,
                                selector: catalogue[best],
                                strategy: strategy.name,
                                position: index + 1,
                            }},
                        }});
                    }} else {{
                        dropped += 1;
                    }}
                    return;
                }}
                dropped += 1;
            }});
            rows.sort((a, b) => a.rank - b.rank);
        }}

        return {{
            counts: counts,
            selector: best >= 0 ? catalogue[best] : '',
            matchCount: bestCount,
            rows: rows,
            dropped: dropped,
            pageTitle: document.title,
            pageUrl: window.location.href,
            userAgent: navigator.userAgent,
        }};
    }}
    """


EXTRACTION_SCRIPT = build_extraction_script()

CONTENT_READY_SCRIPT = """
() => {
    const hasContent = document.querySelectorAll('div').length > 20;
    const noSpinners = document.querySelectorAll('[class*="loading"], [class*="spinner"]').length === 0;
    const hasText = (document.body?.textContent || '').length > 1000;
    return hasContent && noSpinners && hasText;
}
"""


# ---------------------------------------------------------------------------
# Host side
# ---------------------------------------------------------------------------

def coerce_rows(rows: list) -> tuple[list[LeaderboardEntry], int]:
    """Re-validate rows returned by the page. Returns (sorted entries, rejected count)."""
    entries: list[LeaderboardEntry] = []
    rejected = 0
    for position, row in enumerate(rows or [], start=1):
        try:
            raw_rank = row["rank"]
            if isinstance(raw_rank, (int, float)):
                rank = int(raw_rank)
            else:
                rank = parse_rank(str(raw_rank), position)
            entry = LeaderboardEntry(
                rank=rank,
                username=clean_username(str(row["username"])),
                score=float(row["score"]),
                provenance=dict(row.get("provenance") or {}),
            )
        except (KeyError, TypeError, ValueError, AttributeError, OverflowError):
            rejected += 1
            continue
        if not entry.is_valid:
            rejected += 1
            continue
        entries.append(entry)
    return sort_entries(entries), rejected


def candidates_from_counts(counts: list, catalogue: tuple[str, ...] = SELECTOR_CATALOGUE) -> list[CandidateSelector]:
    out = []
    for priority, pattern in enumerate(catalogue):
        n = counts[priority] if priority < len(counts) else 0
        out.append(CandidateSelector(pattern=pattern, priority=priority, match_count=int(n or 0)))
    return out


async def extract_leaderboard(page) -> ExtractionResult:
    """Run the extraction script on *page* and return validated, rank-sorted entries.

    Evaluation errors propagate; the caller treats them as a failed scrape.
    """
    data = await page.evaluate(EXTRACTION_SCRIPT)
    if not isinstance(data, dict):
        data = {}
    candidates = candidates_from_counts(list(data.get("counts") or []))
    winner = best_candidate(candidates)
    entries, rejected = coerce_rows(list(data.get("rows") or []))
    result = ExtractionResult(
        entries=entries,
        selector=winner.pattern if winner else "",
        match_count=winner.match_count if winner else 0,
        candidates=candidates,
        page_title=str(data.get("pageTitle") or ""),
        page_url=str(data.get("pageUrl") or ""),
        user_agent=str(data.get("userAgent") or ""),
        dropped=int(data.get("dropped") or 0) + rejected,
    )
    if result.selector and result.selector != data.get("selector"):
        log.warning("Selector mismatch: page chose %r, host chose %r",
                    data.get("selector"), result.selector)
    log.info("Extracted %d entries via %r (%d matches, %d dropped)",
             len(entries), result.selector, result.match_count, result.dropped)
    return result


async def wait_for_content(page, timeout: float = 15.0) -> bool:
    """Wait until client-rendered content looks ready. Timeout is logged, not raised."""
    try:
        await page.wait_for_function(CONTENT_READY_SCRIPT, timeout=timeout * 1000)
        return True
    except Exception as e:
        log.info("Content wait ended without ready signal (%s); proceeding", type(e).__name__)
        return False

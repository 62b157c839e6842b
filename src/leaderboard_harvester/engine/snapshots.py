"""Diagnostic page snapshots for challenge and empty-extraction investigation.

A snapshot is a JSON bundle (reason, URL, title, text snippet, element
counts) optionally paired with a full-page PNG. Capture is best-effort and
never raises, so it can sit on any failure path.
"""
import json
import logging
import os
import re
import time
from dataclasses import asdict, dataclass, field

log = logging.getLogger(__name__)

_COUNTS_JS = """
() => ({
    divs: document.querySelectorAll('div').length,
    tables: document.querySelectorAll('table').length,
    rows: document.querySelectorAll('tr').length,
    listItems: document.querySelectorAll('li').length,
    testIds: document.querySelectorAll('[data-testid]').length,
})
"""
_SNIPPET_JS = "() => document.body?.innerText?.slice(0, 2000) || ''"


@dataclass
class Snapshot:
    reason: str
    page_url: str = ""
    page_title: str = ""
    page_text_snippet: str = ""
    element_counts: dict[str, int] = field(default_factory=dict)
    screenshot_path: str = ""
    bundle_path: str = ""
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return asdict(self)


def _stamp() -> str:
    return time.strftime("%Y%m%d_%H%M%S") + f"_{int(time.time() * 1000) % 1000:03d}"


def _safe_reason(reason: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]+", "_", reason or "snapshot")[:50]


async def capture_snapshot(
    page,
    reason: str,
    snapshot_dir: str = "",
    *,
    screenshot: bool = True,
) -> Snapshot:
    """Best-effort capture of page diagnostics. Never raises.

    With an empty *snapshot_dir* the bundle is collected but nothing is
    written to disk.
    """
    snap = Snapshot(reason=reason)
    try:
        snap.page_url = page.url or ""
    except Exception:
        pass
    try:
        snap.page_title = (await page.title()) or ""
    except Exception:
        pass
    try:
        snap.page_text_snippet = (await page.evaluate(_SNIPPET_JS)) or ""
    except Exception:
        pass
    try:
        counts = await page.evaluate(_COUNTS_JS)
        if isinstance(counts, dict):
            snap.element_counts = {k: int(v) for k, v in counts.items()}
    except Exception:
        pass

    if not snapshot_dir:
        return snap

    prefix = f"{_stamp()}_{_safe_reason(reason)}"
    if screenshot:
        try:
            os.makedirs(snapshot_dir, exist_ok=True)
            path = os.path.join(snapshot_dir, f"{prefix}.png")
            await page.screenshot(path=path, full_page=True)
            snap.screenshot_path = path
        except Exception as e:
            log.debug("Snapshot screenshot failed: %s", e)

    snap.bundle_path = save_snapshot(snap, snapshot_dir, prefix)
    if snap.bundle_path:
        log.info("Saved %s snapshot to %s", reason, snap.bundle_path)
    return snap


def save_snapshot(snap: Snapshot, base_dir: str, prefix: str = "") -> str:
    """Save the bundle as JSON. Returns the file path, or '' on failure."""
    try:
        os.makedirs(base_dir, exist_ok=True)
        prefix = prefix or f"{_stamp()}_{_safe_reason(snap.reason)}"
        path = os.path.join(base_dir, f"{prefix}.json")
        data = snap.to_dict()
        data["bundle_path"] = path
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2, default=str)
        return path
    except Exception as e:
        log.debug("Failed to save snapshot: %s", e)
        return ""

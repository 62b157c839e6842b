"""Cookie seed loading from an externally provided JSON array."""
import json
import logging
import os

log = logging.getLogger(__name__)

_SAME_SITE = {"strict": "Strict", "lax": "Lax", "none": "None", "no_restriction": "None"}


def _normalize_cookie(raw: dict) -> dict | None:
    """Convert an exported cookie object (Chrome/Puppeteer shape) to Playwright's shape.

    Returns None for cookies missing name/value or any domain/url.
    """
    name = raw.get("name")
    value = raw.get("value")
    if not name or value is None:
        return None
    cookie: dict = {"name": str(name), "value": str(value)}
    if raw.get("url"):
        cookie["url"] = raw["url"]
    elif raw.get("domain"):
        cookie["domain"] = raw["domain"]
        cookie["path"] = raw.get("path") or "/"
    else:
        return None
    expires = raw.get("expires", raw.get("expirationDate"))
    if isinstance(expires, (int, float)) and expires > 0:
        cookie["expires"] = float(expires)
    for key in ("httpOnly", "secure"):
        if key in raw:
            cookie[key] = bool(raw[key])
    same_site = _SAME_SITE.get(str(raw.get("sameSite", "")).lower())
    if same_site:
        cookie["sameSite"] = same_site
    return cookie


def load_cookie_seed(path: str) -> list[dict]:
    """Load and normalize cookies from a JSON array file.

    Never raises; returns ``[]`` on an empty path, a missing file, corrupt
    JSON, or a document that is not an array.
    """
    if not path or not os.path.isfile(path):
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        log.warning("Failed to load cookie seed %s: %s", path, exc)
        return []
    if not isinstance(data, list):
        log.warning("Cookie seed %s is not a JSON array; ignoring", path)
        return []
    cookies = [c for c in (_normalize_cookie(item) for item in data if isinstance(item, dict)) if c]
    if len(cookies) != len(data):
        log.info("Cookie seed: kept %d of %d cookies", len(cookies), len(data))
    return cookies


async def apply_cookies(context, cookies: list[dict]) -> int:
    """Add cookies to a browser context. Returns how many were added (0 on failure)."""
    if not cookies:
        return 0
    try:
        await context.add_cookies(cookies)
        return len(cookies)
    except Exception as e:
        log.warning("Could not inject %d seed cookies: %s", len(cookies), e)
        return 0

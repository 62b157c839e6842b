"""User-Agent, request header and viewport construction."""
import random

DEFAULT_CHROME_VERSION = "120.0.0.0"

DEFAULT_UA_TEMPLATE = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{version} Safari/537.36"
)

# Headers an ordinary top-level navigation from the address bar carries.
NAVIGATION_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,"
              "image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "max-age=0",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
}


def build_user_agent(chrome_version: str = "", template: str = "") -> str:
    """Build a User-Agent string for the given Chrome version.

    If *template* is empty, uses a standard macOS Chrome UA template. An
    empty or unknown version falls back to ``DEFAULT_CHROME_VERSION``.
    """
    return (template or DEFAULT_UA_TEMPLATE).format(
        version=chrome_version or DEFAULT_CHROME_VERSION,
    )


def jittered_viewport(width: int = 1920, height: int = 1080, jitter: int = 100) -> dict[str, int]:
    """Return a viewport a few pixels off the base resolution (0..jitter each axis)."""
    jitter = max(0, int(jitter))
    return {
        "width": int(width) + random.randint(0, jitter),
        "height": int(height) + random.randint(0, jitter),
    }

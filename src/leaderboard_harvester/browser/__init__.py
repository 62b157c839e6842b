"""browser: Playwright session lifecycle and fingerprint-spoofing primitives."""
from .chrome import LaunchStrategy, LaunchOutcome, build_launch_strategies, find_system_chrome, launch_first  # noqa: F401
from .cookies import apply_cookies, load_cookie_seed  # noqa: F401
from .session import BrowserSession, SessionManager, SessionState  # noqa: F401
from .stealth import build_stealth_shim, install_stealth, override_user_agent  # noqa: F401
from .ua import build_user_agent, jittered_viewport  # noqa: F401

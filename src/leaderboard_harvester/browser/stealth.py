"""Fingerprint-evasion shims for Chromium/Chrome pages.

The shim is registered with ``add_init_script`` so it runs before any page
script on every navigation (including reloads). Hardware and display values
are parameters so the same shim can be tuned per deployment.
"""
import json
import logging
import os

log = logging.getLogger(__name__)

# keyed by absolute path
_stealth_js_cache: dict[str, str] = {}

DEFAULT_PLUGINS = (
    "PDF Viewer",
    "Chrome PDF Viewer",
    "Chromium PDF Viewer",
    "Microsoft Edge PDF Viewer",
    "WebKit built-in PDF",
)


def _load_stealth_js(path: str) -> str:
    """Load an extra stealth JS file from disk, with caching.

    Returns ``""`` if *path* is empty/falsy or does not point to a file.
    """
    if not path:
        return ""
    abs_path = os.path.abspath(path)
    if abs_path in _stealth_js_cache:
        return _stealth_js_cache[abs_path]
    if not os.path.isfile(abs_path):
        log.warning("Stealth script %s not found; continuing with built-in shim", abs_path)
        _stealth_js_cache[abs_path] = ""
        return ""
    with open(abs_path, "r", encoding="utf-8") as f:
        content = f.read()
    _stealth_js_cache[abs_path] = content
    return content


def build_stealth_shim(
    chrome_version: str,
    *,
    languages: tuple[str, ...] = ("en-US", "en"),
    plugins: tuple[str, ...] = DEFAULT_PLUGINS,
    hardware_concurrency: int = 8,
    device_memory: int = 8,
    platform: str = "macOS",
    screen_width: int = 1920,
    screen_height: int = 1080,
) -> str:
    """Build the before-load JS that masks automation signals.

    Hides ``navigator.webdriver``, fabricates plugins, languages,
    hardwareConcurrency and deviceMemory, installs a benign ``window.chrome``
    runtime object, and patches the permissions/screen/userAgentData leaks.
    """
    major_js = json.dumps(chrome_version.split(".")[0])
    languages_js = json.dumps(list(languages))
    language_js = json.dumps(languages[0] if languages else "en-US")
    plugins_js = json.dumps(list(plugins))
    platform_js = json.dumps(platform)
    return f"""
    (() => {{
        const define = (obj, prop, value) => {{
            try {{
                Object.defineProperty(obj, prop, {{ get: () => value, configurable: true }});
            }} catch (e) {{}}
        }};

        // -- automation flag --
        define(Object.getPrototypeOf(navigator), 'webdriver', undefined);

        // -- plugins / mimeTypes --
        const plugins = {plugins_js}.map((name) => ({{
            name: name,
            filename: 'internal-pdf-viewer',
            description: 'Portable Document Format',
            length: 1,
        }}));
        plugins.item = (i) => plugins[i] || null;
        plugins.namedItem = (n) => plugins.find((p) => p.name === n) || null;
        plugins.refresh = () => undefined;
        define(navigator, 'plugins', plugins);

        // -- languages --
        define(navigator, 'languages', {languages_js});
        define(navigator, 'language', {language_js});

        // -- hardware --
        define(navigator, 'hardwareConcurrency', {int(hardware_concurrency)});
        define(navigator, 'deviceMemory', {int(device_memory)});
        define(navigator, 'vendor', 'Google Inc.');
        define(navigator, 'maxTouchPoints', 0);

        // -- window.chrome runtime (missing in automation builds) --
        if (!window.chrome) {{
            window.chrome = {{}};
        }}
        window.chrome.runtime = window.chrome.runtime || {{
            onConnect: undefined,
            onMessage: undefined,
            connect: function() {{}},
            sendMessage: function() {{}},
        }};
        window.chrome.loadTimes = window.chrome.loadTimes || function() {{ return {{}}; }};
        window.chrome.csi = window.chrome.csi || function() {{ return {{}}; }};
        window.chrome.app = window.chrome.app || {{ isInstalled: false }};

        // -- navigator.permissions (headless inconsistency fix) --
        if (navigator.permissions && navigator.permissions.query) {{
            const _origQuery = navigator.permissions.query.bind(navigator.permissions);
            navigator.permissions.query = function(desc) {{
                if (desc && desc.name === 'notifications') {{
                    return Promise.resolve({{
                        state: Notification.permission === 'default'
                            ? 'prompt' : Notification.permission,
                        onchange: null,
                    }});
                }}
                return _origQuery(desc);
            }};
        }}

        // -- navigator.userAgentData --
        const brands = [
            {{ brand: "Chromium", version: {major_js} }},
            {{ brand: "Google Chrome", version: {major_js} }},
            {{ brand: "Not/A)Brand", version: "99" }},
        ];
        define(navigator, 'userAgentData', {{
            brands: brands,
            mobile: false,
            platform: {platform_js},
            toJSON: function() {{
                return {{ brands: brands, mobile: false, platform: {platform_js} }};
            }},
        }});

        // -- screen / outer window (outer === inner is a headless tell) --
        define(screen, 'width', {int(screen_width)});
        define(screen, 'height', {int(screen_height)});
        define(screen, 'availWidth', {int(screen_width)});
        define(screen, 'availHeight', {int(screen_height) - 40});
        define(window, 'outerWidth', window.innerWidth);
        define(window, 'outerHeight', window.innerHeight + 85);
    }})();
    """


async def install_stealth(
    page,
    chrome_version: str,
    stealth_js_path: str = "",
    **shim_kwargs,
) -> None:
    """Register stealth scripts to run BEFORE any page JS on every document.

    *stealth_js_path* is an optional extra script (e.g. ``stealth.min.js``)
    prepended to the built-in shim. Extra keyword arguments are forwarded to
    :func:`build_stealth_shim`.
    """
    parts: list[str] = []
    stealth_js = _load_stealth_js(stealth_js_path)
    if stealth_js:
        parts.append(stealth_js)
    parts.append(build_stealth_shim(chrome_version, **shim_kwargs))
    await page.add_init_script(script="\n".join(parts))


async def override_user_agent(page, context, user_agent: str, accept_language: str = "en-US,en") -> bool:
    """Set the page's User-Agent via CDP so ``navigator.userAgent`` matches the header.

    Returns True when the CDP override was installed. On failure (non-Chromium
    engine, CDP unavailable) the caller should fall back to a request header.
    """
    try:
        cdp = await context.new_cdp_session(page)
        await cdp.send("Network.setUserAgentOverride", {
            "userAgent": user_agent,
            "acceptLanguage": accept_language,
        })
        return True
    except Exception as e:
        log.warning("CDP user-agent override failed (%s); falling back to header", e)
        return False

"""Tests for browser module: no actual browser needed."""
import json
import os
import tempfile
from unittest.mock import AsyncMock, MagicMock

import pytest

from leaderboard_harvester.browser import stealth
from leaderboard_harvester.browser.chrome import (
    ANTI_AUTOMATION_ARGS,
    LaunchStrategy,
    build_launch_strategies,
    find_system_chrome,
    launch_first,
)
from leaderboard_harvester.browser.cookies import apply_cookies, load_cookie_seed
from leaderboard_harvester.browser.stealth import build_stealth_shim, install_stealth, override_user_agent
from leaderboard_harvester.browser.ua import build_user_agent, jittered_viewport


# -- ua ----------------------------------------------------------------------

def test_build_user_agent():
    ua = build_user_agent("131.0.6778.86")
    assert "Chrome/131.0.6778.86" in ua
    assert "Macintosh" in ua


def test_build_user_agent_defaults_version():
    assert "Chrome/120.0.0.0" in build_user_agent("")


def test_build_user_agent_custom_template():
    ua = build_user_agent("131.0.0.0", template="MyBrowser/{version}")
    assert ua == "MyBrowser/131.0.0.0"


def test_jittered_viewport_bounds():
    for _ in range(50):
        vp = jittered_viewport(1920, 1080, 100)
        assert 1920 <= vp["width"] <= 2020
        assert 1080 <= vp["height"] <= 1180


def test_jittered_viewport_zero_jitter():
    assert jittered_viewport(1280, 720, 0) == {"width": 1280, "height": 720}


# -- stealth -----------------------------------------------------------------

def test_build_stealth_shim_returns_js():
    js = build_stealth_shim("131.0.6778.86")
    assert "webdriver" in js
    assert "userAgentData" in js
    assert "window.chrome" in js
    assert '"131"' in js


def test_build_stealth_shim_custom_params():
    js = build_stealth_shim(
        "130.0.0.0",
        hardware_concurrency=4,
        device_memory=8,
        platform="Linux",
        screen_width=1600,
        screen_height=900,
    )
    assert "Linux" in js
    assert "'hardwareConcurrency', 4" in js
    assert "'deviceMemory', 8" in js
    assert "1600" in js


@pytest.mark.asyncio
async def test_install_stealth_prepends_extra_script():
    page = MagicMock()
    page.add_init_script = AsyncMock()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "extra.js")
        with open(path, "w") as f:
            f.write("window.__extra = 1;")
        stealth._stealth_js_cache.clear()
        await install_stealth(page, "120.0.0.0", stealth_js_path=path)
    script = page.add_init_script.call_args.kwargs["script"]
    assert script.startswith("window.__extra = 1;")
    assert "webdriver" in script


@pytest.mark.asyncio
async def test_install_stealth_missing_extra_script():
    page = MagicMock()
    page.add_init_script = AsyncMock()
    await install_stealth(page, "120.0.0.0", stealth_js_path="/nonexistent/stealth.js")
    script = page.add_init_script.call_args.kwargs["script"]
    assert "webdriver" in script


@pytest.mark.asyncio
async def test_override_user_agent_via_cdp():
    cdp = MagicMock()
    cdp.send = AsyncMock()
    context = MagicMock()
    context.new_cdp_session = AsyncMock(return_value=cdp)
    assert await override_user_agent(MagicMock(), context, "UA/1") is True
    method, params = cdp.send.call_args.args
    assert method == "Network.setUserAgentOverride"
    assert params["userAgent"] == "UA/1"


@pytest.mark.asyncio
async def test_override_user_agent_failure_returns_false():
    context = MagicMock()
    context.new_cdp_session = AsyncMock(side_effect=RuntimeError("not chromium"))
    assert await override_user_agent(MagicMock(), context, "UA/1") is False


# -- cookies -----------------------------------------------------------------

def test_load_cookie_seed_missing_file():
    assert load_cookie_seed("/nonexistent/path.json") == []
    assert load_cookie_seed("") == []


def test_load_cookie_seed_corrupt_json():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "cookies.json")
        with open(path, "w") as f:
            f.write("{not json")
        assert load_cookie_seed(path) == []


def test_load_cookie_seed_not_an_array():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "cookies.json")
        with open(path, "w") as f:
            json.dump({"name": "a"}, f)
        assert load_cookie_seed(path) == []


def test_load_cookie_seed_normalizes():
    raw = [
        {"name": "sid", "value": "abc", "domain": ".example.com", "expirationDate": 1900000000,
         "httpOnly": True, "sameSite": "no_restriction"},
        {"name": "url_cookie", "value": "1", "url": "https://example.com"},
        {"name": "nodomain", "value": "x"},
        {"value": "noname", "domain": "example.com"},
    ]
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "cookies.json")
        with open(path, "w") as f:
            json.dump(raw, f)
        cookies = load_cookie_seed(path)
    assert len(cookies) == 2
    sid = cookies[0]
    assert sid["domain"] == ".example.com"
    assert sid["path"] == "/"
    assert sid["expires"] == 1900000000.0
    assert sid["httpOnly"] is True
    assert sid["sameSite"] == "None"
    assert cookies[1] == {"name": "url_cookie", "value": "1", "url": "https://example.com"}


@pytest.mark.asyncio
async def test_apply_cookies():
    context = MagicMock()
    context.add_cookies = AsyncMock()
    assert await apply_cookies(context, [{"name": "a", "value": "1", "url": "https://x"}]) == 1
    assert await apply_cookies(context, []) == 0
    context.add_cookies = AsyncMock(side_effect=RuntimeError("bad cookie"))
    assert await apply_cookies(context, [{"name": "a", "value": "1", "url": "https://x"}]) == 0


# -- chrome / launch strategies ---------------------------------------------

def test_find_system_chrome():
    """find_system_chrome returns a string or None."""
    result = find_system_chrome()
    assert result is None or isinstance(result, str)


def test_build_launch_strategies_order():
    strategies = build_launch_strategies(chrome_path="/usr/bin/google-chrome", user_data_dir="/tmp/profile")
    assert [s.name for s in strategies] == ["system-chrome-profile", "bundled-chromium", "auto-detected"]
    assert strategies[0].persistent
    assert strategies[0].profile_directory == "Default"
    assert strategies[2].channel == "chrome"


def test_build_launch_strategies_without_chrome():
    strategies = build_launch_strategies(chrome_path="", user_data_dir="/tmp/profile")
    assert [s.name for s in strategies] == ["bundled-chromium", "auto-detected"]


def _fake_playwright(launch_side_effect=None, persistent_side_effect=None):
    pw = MagicMock()
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=MagicMock(name="context"))
    browser.close = AsyncMock()
    pw.chromium.launch = AsyncMock(return_value=browser, side_effect=launch_side_effect)
    pw.chromium.launch_persistent_context = AsyncMock(
        return_value=MagicMock(name="persistent"), side_effect=persistent_side_effect,
    )
    return pw, browser


@pytest.mark.asyncio
async def test_launch_first_stops_at_first_success():
    pw, browser = _fake_playwright(persistent_side_effect=RuntimeError("profile locked"))
    with tempfile.TemporaryDirectory() as tmpdir:
        strategies = [
            LaunchStrategy(name="system-chrome-profile", executable_path="/bin/chrome", user_data_dir=tmpdir,
                           profile_directory="Default"),
            LaunchStrategy(name="bundled-chromium"),
            LaunchStrategy(name="auto-detected", channel="chrome"),
        ]
        outcome = await launch_first(pw, strategies)

    assert outcome.ok
    assert outcome.strategy.name == "bundled-chromium"
    assert outcome.browser is browser
    assert outcome.failures == [("system-chrome-profile", "profile locked")]
    # the third strategy is never tried
    assert pw.chromium.launch.await_count == 1
    kwargs = pw.chromium.launch.call_args.kwargs
    assert "channel" not in kwargs
    assert kwargs["ignore_default_args"] == ["--enable-automation"]
    assert set(ANTI_AUTOMATION_ARGS) <= set(kwargs["args"])


@pytest.mark.asyncio
async def test_launch_first_persistent_profile_args():
    pw, _ = _fake_playwright()
    with tempfile.TemporaryDirectory() as tmpdir:
        strategy = LaunchStrategy(name="system-chrome-profile", executable_path="/bin/chrome",
                                  user_data_dir=tmpdir, profile_directory="Profile 1")
        outcome = await launch_first(pw, [strategy], headless=False)
    assert outcome.ok
    assert outcome.browser is None
    args, kwargs = pw.chromium.launch_persistent_context.call_args
    assert args[0] == tmpdir
    assert kwargs["executable_path"] == "/bin/chrome"
    assert kwargs["headless"] is False
    assert "--profile-directory=Profile 1" in kwargs["args"]


@pytest.mark.asyncio
async def test_launch_first_all_fail():
    pw, _ = _fake_playwright(launch_side_effect=RuntimeError("Executable doesn't exist\nmore detail"))
    outcome = await launch_first(pw, [LaunchStrategy(name="bundled-chromium"),
                                      LaunchStrategy(name="auto-detected", channel="chrome")])
    assert not outcome.ok
    assert outcome.failures == [
        ("bundled-chromium", "Executable doesn't exist"),
        ("auto-detected", "Executable doesn't exist"),
    ]

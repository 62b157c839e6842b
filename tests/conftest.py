"""Shared fixtures: a real Chromium page for tests of in-page behavior.

Browser tests carry the ``browser`` marker. They skip when Chromium cannot
be launched unless LEADERBOARD_REQUIRE_BROWSER is set, in which case they
fail so CI cannot pass without running them.
"""
import os

import pytest
import pytest_asyncio


def _browser_required() -> bool:
    return os.environ.get("LEADERBOARD_REQUIRE_BROWSER", "").lower() not in ("", "0", "false", "no")


@pytest_asyncio.fixture
async def chromium_page():
    from playwright.async_api import async_playwright

    pw = await async_playwright().start()
    try:
        browser = await pw.chromium.launch()
    except Exception as e:
        await pw.stop()
        if _browser_required():
            pytest.fail(f"Chromium required but unavailable: {e}")
        pytest.skip(f"Chromium unavailable: {e}")
    page = await browser.new_page()
    yield page
    await browser.close()
    await pw.stop()

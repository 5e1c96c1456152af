"""Browser setup — launch flags, per-journey contexts and request blocking."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Route

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]

# Keep navigation in the same tab; chat widgets try to open their own windows.
_SAME_TAB_INIT_SCRIPT = """
(() => {
  const blocked = %s;
  window.open = (url) => {
    if (url && !blocked.some((b) => String(url).includes(b))) {
      window.location.href = url;
    }
    return window;
  };
})();
"""

_WEBDRIVER_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
"""


async def launch_browser(playwright: Playwright, headless: bool = True) -> Browser:
    """Launch Chromium with the suite's launch flags."""
    return await playwright.chromium.launch(headless=headless, args=list(LAUNCH_ARGS))


def is_blocked(url: str, patterns: Sequence[str]) -> bool:
    return any(p in url for p in patterns)


async def create_journey_context(
    browser: Browser,
    viewport: dict,
    blocked_url_patterns: Sequence[str] = (),
    user_agent: Optional[str] = None,
) -> BrowserContext:
    """Create an isolated context for one journey.

    Requests whose URL contains any of ``blocked_url_patterns`` are aborted,
    and ``window.open`` navigates the current tab instead of opening a new one.
    """
    context_kwargs: dict = {
        "viewport": viewport,
        "ignore_https_errors": True,
    }
    if user_agent:
        context_kwargs["user_agent"] = user_agent

    context = await browser.new_context(**context_kwargs)
    await context.add_init_script(_WEBDRIVER_INIT_SCRIPT)

    patterns = list(blocked_url_patterns)
    if patterns:
        quoted = "[" + ", ".join(repr(p) for p in patterns) + "]"
        await context.add_init_script(_SAME_TAB_INIT_SCRIPT % quoted)

        async def _route(route: Route) -> None:
            if is_blocked(route.request.url, patterns):
                await route.abort()
            else:
                await route.continue_()

        await context.route("**/*", _route)
    return context


async def new_page(context: BrowserContext, default_timeout_ms: int, navigation_timeout_ms: int) -> Page:
    page = await context.new_page()
    page.set_default_timeout(default_timeout_ms)
    page.set_default_navigation_timeout(navigation_timeout_ms)
    page.on("close", lambda _: logger.debug("Page closed"))
    return page

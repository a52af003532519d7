"""Open a chat page in Chromium for document extraction."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Optional

from playwright.async_api import Page, async_playwright

from studio_export.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_PROFILE = Path.home() / ".config" / "studio-export" / "playwright-profile"


@asynccontextmanager
async def open_page(
    url: str,
    profile_dir: Optional[Path] = None,
    headless: bool = False,
    cdp_endpoint: Optional[str] = None,
    before_navigate: Optional[Callable[[Page], None]] = None,
) -> AsyncIterator[Page]:
    """Yield a page showing url.

    With cdp_endpoint, attach to an already running, already signed-in browser
    and reuse a tab showing url if there is one. Otherwise launch a persistent
    profile so that a sign-in done once is kept between runs.

    before_navigate is called with the page before it loads url, so listeners
    see the initial requests. A reused tab is reloaded for the same reason.
    """
    async with async_playwright() as p:
        if cdp_endpoint:
            browser = await p.chromium.connect_over_cdp(cdp_endpoint)
            context = browser.contexts[0] if browser.contexts else await browser.new_context()
            page = next((pg for pg in context.pages if pg.url.startswith(url)), None)
            if page is None:
                page = await context.new_page()
                if before_navigate:
                    before_navigate(page)
                await page.goto(url, wait_until="domcontentloaded")
            elif before_navigate:
                before_navigate(page)
                await page.reload(wait_until="domcontentloaded")
            logger.info("Attached over CDP to %s", page.url)
            # Leave the user's browser running; only drop the connection.
            try:
                yield page
            finally:
                await browser.close()
            return

        profile = profile_dir or DEFAULT_PROFILE
        profile.mkdir(parents=True, exist_ok=True)
        context = await p.chromium.launch_persistent_context(
            user_data_dir=str(profile),
            headless=headless,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",
                "--no-first-run",
            ],
        )
        try:
            page = context.pages[0] if context.pages else await context.new_page()
            if before_navigate:
                before_navigate(page)
            await page.goto(url, wait_until="domcontentloaded")
            logger.info("Opened %s with profile %s", url, profile)
            yield page
        finally:
            await context.close()

"""Browser lifecycle: launch Chromium with a saved session and hand out a driver."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from playwright.async_api import async_playwright

from flowwright.browser.driver import PlaywrightDriver
from flowwright.config import AppConfig

logger = logging.getLogger(__name__)

_VIEWPORT = {"width": 1920, "height": 1080}


@asynccontextmanager
async def browser_session(config: AppConfig) -> AsyncIterator[PlaywrightDriver]:
    """
    Yield a :class:`PlaywrightDriver` on a fresh page.

    The context reuses ``config.storage_state`` when the file exists; this
    module never performs a login.
    """
    storage_state = config.storage_state
    if storage_state and not Path(storage_state).is_file():
        logger.warning("Storage state %s not found; starting without a session", storage_state)
        storage_state = None

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(
            headless=config.headless,
            slow_mo=config.slow_mo,
            args=["--no-sandbox", "--disable-blink-features=AutomationControlled"],
        )
        try:
            context = await browser.new_context(storage_state=storage_state, viewport=_VIEWPORT)
            page = await context.new_page()
            page.set_default_timeout(config.page_timeout)
            yield PlaywrightDriver(page, screenshot_dir=config.screenshot_dir)
        finally:
            await browser.close()

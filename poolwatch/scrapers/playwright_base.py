"""Shared Playwright browser management for the wagering site."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page

from poolwatch.config import settings

logger = logging.getLogger(__name__)

# Module-level singleton for browser reuse
_browser: Optional[Browser] = None
_playwright = None

SESSION_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Upgrade-Insecure-Requests": "1",
}

# Runs before any page script in every page of the context
SESSION_INIT_SCRIPT = """() => {
    Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
    Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
    Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3] });
    window.chrome = window.chrome || { runtime: {} };
}"""


async def get_browser() -> Browser:
    """Get or launch the shared Chromium browser instance (lazy-start)."""
    global _browser, _playwright
    if _browser is None or not _browser.is_connected():
        _playwright = await async_playwright().start()
        launch_kwargs = {
            "headless": settings.headless,
            "args": [
                "--disable-blink-features=AutomationControlled",
                "--no-sandbox",
                "--disable-dev-shm-usage",
            ],
        }
        if settings.chromium_executable:
            launch_kwargs["executable_path"] = settings.chromium_executable
        _browser = await _playwright.chromium.launch(**launch_kwargs)
        logger.info("Playwright browser launched")
    return _browser


async def close_browser() -> None:
    """Close the shared browser instance."""
    global _browser, _playwright
    if _browser is not None:
        await _browser.close()
        _browser = None
    if _playwright is not None:
        await _playwright.stop()
        _playwright = None
    logger.info("Playwright browser closed")


async def configure_session(context: BrowserContext) -> None:
    """One-time session setup for a fresh browsing context.

    Kept apart from extraction code: pages only ever see the configured context.
    """
    await context.set_extra_http_headers(SESSION_HEADERS)
    await context.add_init_script(script=f"({SESSION_INIT_SCRIPT})()")


def _context_options() -> dict:
    options = {
        "user_agent": settings.user_agent,
        "viewport": {"width": 1280, "height": 900},
        "locale": "en-US",
        "ignore_https_errors": True,
    }
    if settings.proxy_server:
        proxy = {"server": settings.proxy_server}
        if settings.proxy_username and settings.proxy_password:
            proxy["username"] = settings.proxy_username
            proxy["password"] = settings.proxy_password
        options["proxy"] = proxy
    return options


@asynccontextmanager
async def new_page(timeout: float = 45000):
    """Async context manager that yields a page in a fresh browsing context.

    Handles page lifecycle: creates context and page, applies the session
    configuration, and closes the context on exit. Element handles from a
    page never outlive this block.
    """
    browser = await get_browser()
    context: BrowserContext = await browser.new_context(**_context_options())
    await configure_session(context)
    page: Page = await context.new_page()
    page.set_default_timeout(timeout)

    try:
        yield page
    finally:
        await context.close()


async def retry_with_backoff(coro_fn, max_attempts: int = 3, base_delay: float = 5.0, multiplier: float = 3.0):
    """Retry an async callable with exponential backoff.

    Args:
        coro_fn: Zero-argument async callable to retry.
        max_attempts: Maximum retry attempts.
        base_delay: Initial delay in seconds.
        multiplier: Delay multiplier per attempt.
    """
    last_err = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await coro_fn()
        except Exception as e:
            last_err = e
            if attempt < max_attempts:
                delay = base_delay * (multiplier ** (attempt - 1))
                logger.warning(f"Attempt {attempt}/{max_attempts} failed: {e}. Retrying in {delay:.0f}s...")
                await asyncio.sleep(delay)
    raise last_err


async def screenshot_debug(page: Page, name: str = "debug") -> None:
    """Save a debug screenshot when screenshots are enabled."""
    if not settings.capture_screenshots:
        return
    debug_dir = settings.debug_dir
    debug_dir.mkdir(parents=True, exist_ok=True)
    path = debug_dir / f"{name}.png"
    try:
        await page.screenshot(path=str(path))
        logger.debug(f"Debug screenshot saved: {path}")
    except Exception as e:
        logger.warning(f"Could not save debug screenshot {path}: {e}")

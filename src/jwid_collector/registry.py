"""Registry adapter: the only module that touches the live J-WID site.

The engine talks to a :class:`Registry`, which hands back page markup as
plain strings. :class:`PlaywrightRegistry` drives a headless Chromium
against the real search form; tests substitute a fake that replays
recorded pages.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol
from urllib.parse import urlsplit

import httpx
from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from jwid_collector.config import Settings
from jwid_collector.errors import (
    FormNotFoundError,
    RegistryTimeoutError,
    RegistryUnavailableError,
)
from jwid_collector.strategies import SearchAttempt


__all__ = ['PlaywrightRegistry', 'Registry', 'check_reachable']

logger = logging.getLogger(__name__)

# ── Search form ──
CLEAR_BUTTON = 'button.btn.searchForm.clear[type="button"]'
SUBMIT_BUTTON = 'button[name="CMD_SEARCH"][type="submit"]'
TITLE_INPUT = 'input[name="IN_WORKS_TITLE_NAME1"]'
ARTIST_INPUT = 'input[name="IN_ARTIST_NAME1"]'
PERSON_INPUT = 'input[name="IN_KEN_NAME{slot}"]'
PERSON_ROLE_INPUT = 'input[name="IN_KEN_NAME_JOB{slot}"]'
MAX_PERSON_SLOTS = 2

# ── Result and detail pages ──
NO_RESULT_MARKER = 'div.search-noresult'
RESULT_TABLE = 'table.search-result'
RESULT_ROWS = 'table.search-result tbody tr'
DETAIL_TABLE = 'table.detail'

# Role slots are hidden inputs, so they are set directly rather than typed into
_SET_VALUE_JS = """([selector, value]) => {
    const el = document.querySelector(selector);
    if (el) el.value = value;
}"""


class Registry(Protocol):
    """What the collector needs from the registry site."""

    async def __aenter__(self) -> Registry: ...

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: object,
    ) -> None: ...

    async def submit(self, attempt: SearchAttempt) -> str:
        """Submit one search and return the settled result-page markup."""
        ...

    async def open_detail(self, row_index: int) -> str | None:
        """Open the detail page of result row *row_index*; None if it has no link."""
        ...


async def check_reachable(url: str, timeout: float = 30.0) -> None:
    """Raise RegistryUnavailableError unless *url* answers without a server error."""
    async with httpx.AsyncClient(
        transport=httpx.AsyncHTTPTransport(retries=3),
        timeout=timeout,
        follow_redirects=True,
    ) as client:
        try:
            resp = await client.get(url)
        except httpx.HTTPError as exc:
            raise RegistryUnavailableError(f'cannot reach {url}: {exc}') from exc
    if resp.status_code >= 500:
        raise RegistryUnavailableError(f'{url} answered HTTP {resp.status_code}')


class PlaywrightRegistry:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None

    async def __aenter__(self) -> PlaywrightRegistry:
        await check_reachable(self._settings.search_url)
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._settings.headless,
                args=['--no-sandbox'],
            )
            context = await self._browser.new_context(user_agent=self._settings.user_agent)
            context.set_default_timeout(self._settings.timeout_ms)
            self._page = await context.new_page()
            await self._open_search_page(self._page)
        except PlaywrightError as exc:
            await self.close()
            raise RegistryUnavailableError(f'cannot open the registry: {exc}') from exc
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: object,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as exc:
                logger.warning('Error closing browser: %s', exc)
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        self._page = None

    async def submit(self, attempt: SearchAttempt) -> str:
        page = self._require_page()
        try:
            if urlsplit(page.url).netloc != urlsplit(self._settings.search_url).netloc:
                await self._open_search_page(page)

            if await page.query_selector(TITLE_INPUT) is None:
                await self._dump_debug(page, 'search form not found')
                raise FormNotFoundError('search form title field not found')

            await self._clear_form(page)
            await page.fill(TITLE_INPUT, attempt.title)
            for slot, (name, role) in enumerate(attempt.persons[:MAX_PERSON_SLOTS], start=1):
                await page.fill(PERSON_INPUT.format(slot=slot), name)
                await page.evaluate(
                    _SET_VALUE_JS, [PERSON_ROLE_INPUT.format(slot=slot), str(int(role))]
                )
            if attempt.artist:
                await page.fill(ARTIST_INPUT, attempt.artist)

            button = await page.query_selector(SUBMIT_BUTTON)
            if button is None:
                await self._dump_debug(page, 'search button not found')
                raise FormNotFoundError('search submit button not found')

            await button.click()
            await page.wait_for_load_state('domcontentloaded')
            await page.wait_for_timeout(self._settings.settle_ms)

            if (
                await page.query_selector(NO_RESULT_MARKER) is None
                and await page.query_selector(RESULT_TABLE) is None
            ):
                await self._dump_debug(page, 'search result table not found')
            return await page.content()
        except PlaywrightTimeoutError as exc:
            raise RegistryTimeoutError(f'search timed out: {exc}') from exc
        except PlaywrightError as exc:
            raise RegistryTimeoutError(f'search failed: {exc}') from exc

    async def open_detail(self, row_index: int) -> str | None:
        page = self._require_page()
        try:
            # Header row first, same as the parsed result page
            rows = (await page.query_selector_all(RESULT_ROWS))[1:]
            if row_index >= len(rows):
                logger.warning('Result row %d no longer on the page', row_index + 1)
                return None
            links = await rows[row_index].query_selector_all('a')
            if not links:
                logger.info('Result row %d has no detail link', row_index + 1)
                return None

            async with page.context.expect_page() as popup_info:
                await links[0].click()
            detail = await popup_info.value
            try:
                await detail.wait_for_load_state('domcontentloaded')
                await detail.wait_for_timeout(self._settings.settle_ms)
                if await detail.query_selector(DETAIL_TABLE) is None:
                    await self._dump_debug(detail, 'detail table not found')
                return await detail.content()
            finally:
                await detail.close()
        except PlaywrightTimeoutError as exc:
            raise RegistryTimeoutError(f'detail page timed out: {exc}') from exc
        except PlaywrightError as exc:
            raise RegistryTimeoutError(f'detail page failed: {exc}') from exc

    async def _open_search_page(self, page: Page) -> None:
        await page.goto(self._settings.search_url, wait_until='domcontentloaded')
        await page.wait_for_timeout(self._settings.initial_settle_ms)

    async def _clear_form(self, page: Page) -> None:
        """Reset the previous search's fields; a missing clear button is fine."""
        button = await page.query_selector(CLEAR_BUTTON)
        if button is None:
            logger.debug('Clear button not found; assuming the form is already empty')
            return
        await button.click()
        await page.wait_for_timeout(self._settings.clear_settle_ms)

    async def _dump_debug(self, page: Page, reason: str) -> None:
        """Save a screenshot and the markup of *page* for post-mortem inspection."""
        stamp = datetime.now().strftime('%Y%m%dT%H%M%S%f')
        debug_dir: Path = self._settings.debug_dir
        logger.error('%s (url: %s)', reason, page.url)
        try:
            debug_dir.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(debug_dir / f'error-{stamp}.png'), full_page=True)
            (debug_dir / f'page-{stamp}.html').write_text(await page.content(), encoding='utf-8')
        except (PlaywrightError, OSError) as exc:
            logger.warning('Could not save debug snapshot: %s', exc)

    def _require_page(self) -> Page:
        if self._page is None:
            raise RuntimeError('registry session is not open; use "async with"')
        return self._page

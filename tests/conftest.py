from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from jwid_collector.config import Settings
from jwid_collector.errors import RegistryTimeoutError
from jwid_collector.job import JobStore
from jwid_collector.strategies import SearchAttempt


FIXTURES = Path(__file__).parent / 'fixtures'

NO_RESULTS_HTML = '<html><body><div class="search-noresult">該当する作品はありません</div></body></html>'


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding='utf-8')


class FakeRegistry:
    """Replays recorded pages instead of driving a browser.

    ``result_pages`` are returned by successive submits; the last one
    repeats once the list runs out. ``detail_pages`` maps a result row index
    to its detail markup, and indices in ``timeouts`` raise instead.
    """

    def __init__(
        self,
        result_pages: list[str],
        detail_pages: dict[int, str] | None = None,
        timeouts: set[int] | None = None,
        on_submit: Callable[[SearchAttempt], None] | None = None,
        enter_error: Exception | None = None,
    ) -> None:
        self.result_pages = result_pages
        self.detail_pages = detail_pages or {}
        self.timeouts = timeouts or set()
        self.on_submit = on_submit
        self.enter_error = enter_error
        self.submitted: list[SearchAttempt] = []
        self.opened: list[int] = []
        self.entered = 0
        self.exited = 0

    async def __aenter__(self) -> FakeRegistry:
        if self.enter_error is not None:
            raise self.enter_error
        self.entered += 1
        return self

    async def __aexit__(self, _exc_type, _exc_val, _exc_tb) -> None:
        self.exited += 1

    async def submit(self, attempt: SearchAttempt) -> str:
        self.submitted.append(attempt)
        if self.on_submit is not None:
            self.on_submit(attempt)
        position = min(len(self.submitted), len(self.result_pages)) - 1
        return self.result_pages[position]

    async def open_detail(self, row_index: int) -> str | None:
        self.opened.append(row_index)
        if row_index in self.timeouts:
            raise RegistryTimeoutError(f'detail page {row_index} timed out')
        return self.detail_pages.get(row_index)


@pytest.fixture
def result_html() -> str:
    return load_fixture('result_butterfly.html')


@pytest.fixture
def detail_html() -> str:
    return load_fixture('detail_butterfly.html')


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        job_dir=tmp_path / 'job',
        debug_dir=tmp_path / 'debug',
        settle_ms=0,
        job_grace_seconds=30,
        job_stall_seconds=30,
    )


@pytest.fixture
def store(settings: Settings) -> JobStore:
    store = JobStore(settings.job_dir)
    store.reset()
    return store

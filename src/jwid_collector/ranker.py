"""Result-page parsing and weighted field-overlap ranking of candidate rows."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup

from jwid_collector.errors import ResultTableNotFoundError
from jwid_collector.models import Query
from jwid_collector.normalize import normalize_text


__all__ = [
    'CandidateRow',
    'ResultPage',
    'ScoreComponents',
    'ScoredRow',
    'parse_result_page',
    'rank_rows',
]

logger = logging.getLogger(__name__)

NO_RESULT_SELECTOR = 'div.search-noresult'
RESULT_TABLE_SELECTOR = 'table.search-result'
RESULT_ROW_SELECTOR = 'table.search-result tbody tr'

TITLE_CELL = 2
AUTHOR_CELL = 3
MIN_CELLS = 3
DEFAULT_LIMIT = 3

TITLE_WEIGHT = 3
LYRICIST_WEIGHT = 2
COMPOSER_WEIGHT = 2
ARTIST_WEIGHT = 1


@dataclass(frozen=True)
class CandidateRow:
    """One data row of a result table; ``index`` excludes the header row."""

    index: int
    cells: tuple[str, ...]


@dataclass(frozen=True)
class ResultPage:
    no_results: bool
    rows: tuple[CandidateRow, ...] = ()


@dataclass(frozen=True)
class ScoreComponents:
    title: bool = False
    lyricist: bool = False
    composer: bool = False
    artist: bool = False

    @property
    def total(self) -> int:
        return (
            TITLE_WEIGHT * self.title
            + LYRICIST_WEIGHT * self.lyricist
            + COMPOSER_WEIGHT * self.composer
            + ARTIST_WEIGHT * self.artist
        )


@dataclass(frozen=True)
class ScoredRow:
    row: CandidateRow
    components: ScoreComponents

    @property
    def score(self) -> int:
        return self.components.total

    @property
    def index(self) -> int:
        return self.row.index


def parse_result_page(html: str) -> ResultPage:
    """Read the result table of a submitted search.

    Raises ResultTableNotFoundError when the page neither signals "no
    results" nor carries a result table.
    """
    soup = BeautifulSoup(html, 'html.parser')
    if soup.select_one(NO_RESULT_SELECTOR) is not None:
        return ResultPage(no_results=True)
    if soup.select_one(RESULT_TABLE_SELECTOR) is None:
        raise ResultTableNotFoundError('search result table not found')

    # First row is the column header
    rows = soup.select(RESULT_ROW_SELECTOR)[1:]
    return ResultPage(
        no_results=False,
        rows=tuple(
            CandidateRow(
                index=i,
                cells=tuple(td.get_text() for td in tr.find_all('td')),
            )
            for i, tr in enumerate(rows)
        ),
    )


def score_row(row: CandidateRow, query: Query) -> ScoreComponents:
    """Substring containment after normalization on both sides."""
    title = normalize_text(row.cells[TITLE_CELL])
    author = normalize_text(row.cells[AUTHOR_CELL]) if len(row.cells) > AUTHOR_CELL else ''

    def _in_author(value: str | None) -> bool:
        needle = normalize_text(value) if value else ''
        return bool(needle) and needle in author

    return ScoreComponents(
        title=normalize_text(query.title) in title,
        lyricist=_in_author(query.lyricist),
        composer=_in_author(query.composer),
        artist=_in_author(query.artist),
    )


def rank_rows(
    rows: tuple[CandidateRow, ...] | list[CandidateRow],
    query: Query,
    limit: int = DEFAULT_LIMIT,
) -> list[ScoredRow]:
    """Return the top *limit* rows by score; ties keep page order.

    Zero-score rows are still ranked; whether to accept them is the
    caller's decision.
    """
    scored: list[ScoredRow] = []
    for row in rows:
        if len(row.cells) < MIN_CELLS:
            continue
        try:
            components = score_row(row, query)
        except (AttributeError, TypeError, IndexError) as exc:
            logger.warning('Skipping result row %d: %s', row.index + 1, exc)
            continue
        scored.append(ScoredRow(row=row, components=components))
        logger.debug(
            'Row %d score %d (title: %.30s)',
            row.index + 1,
            components.total,
            row.cells[TITLE_CELL].strip(),
        )

    scored.sort(key=lambda s: s.score, reverse=True)
    return scored[:limit]

from __future__ import annotations

import pytest
from conftest import NO_RESULTS_HTML

from jwid_collector.errors import ResultTableNotFoundError
from jwid_collector.models import Query
from jwid_collector.ranker import CandidateRow, parse_result_page, rank_rows


def _row(index: int, title: str, authors: str = '') -> CandidateRow:
    return CandidateRow(index=index, cells=(str(index + 1), f'000-000{index}-0', title, authors))


def test_parse_result_page_skips_header_row(result_html: str) -> None:
    page = parse_result_page(result_html)

    assert not page.no_results
    assert len(page.rows) == 1
    row = page.rows[0]
    assert row.index == 0
    assert row.cells[1] == '036-5421-3'
    assert row.cells[2] == 'Ｂｕｔｔｅｒ－Ｆｌｙ'


def test_parse_result_page_detects_no_results() -> None:
    page = parse_result_page(NO_RESULTS_HTML)
    assert page.no_results
    assert page.rows == ()


def test_parse_result_page_without_table_raises() -> None:
    with pytest.raises(ResultTableNotFoundError):
        parse_result_page('<html><body><p>メンテナンス中</p></body></html>')


def test_title_and_both_authors_score_seven(result_html: str) -> None:
    query = Query(title='Butter-Fly', composer='千綿偉功', lyricist='和田光司')

    ranked = rank_rows(parse_result_page(result_html).rows, query)

    assert len(ranked) == 1
    assert ranked[0].score == 7
    components = ranked[0].components
    assert components.title and components.lyricist and components.composer
    assert not components.artist


def test_title_match_alone_scores_at_least_three() -> None:
    ranked = rank_rows([_row(0, 'BUTTER-FLY (TV SIZE)')], Query(title='butter-fly'))
    assert ranked[0].score >= 3


def test_rank_orders_by_score_and_keeps_page_order_on_ties() -> None:
    query = Query(title='Song', composer='Tanaka')
    rows = [
        _row(0, 'Other', 'Nobody'),
        _row(1, 'Song', 'Suzuki'),
        _row(2, 'Song', 'Tanaka'),
        _row(3, 'Song', 'Sato'),
    ]

    ranked = rank_rows(rows, query, limit=4)

    assert [s.index for s in ranked] == [2, 1, 3, 0]
    assert [s.score for s in ranked] == [5, 3, 3, 0]


def test_rank_respects_limit() -> None:
    rows = [_row(i, 'Song') for i in range(5)]
    ranked = rank_rows(rows, Query(title='Song'), limit=3)
    assert [s.index for s in ranked] == [0, 1, 2]


def test_rows_with_too_few_cells_are_skipped() -> None:
    rows = [
        CandidateRow(index=0, cells=('1', 'Song')),
        _row(1, 'Song'),
    ]
    ranked = rank_rows(rows, Query(title='Song'))
    assert [s.index for s in ranked] == [1]


def test_row_without_author_cell_only_scores_title() -> None:
    row = CandidateRow(index=0, cells=('1', '000-0000-0', 'Song'))
    ranked = rank_rows([row], Query(title='Song', composer='Tanaka'))
    assert ranked[0].score == 3


def test_score_grows_with_each_matching_field() -> None:
    row = _row(0, 'Song', 'Lyric Writer / Tune Writer / Singer')
    queries = [
        Query(title='Song'),
        Query(title='Song', artist='Singer'),
        Query(title='Song', artist='Singer', composer='Tune Writer'),
        Query(title='Song', artist='Singer', composer='Tune Writer', lyricist='Lyric Writer'),
    ]

    scores = [rank_rows([row], q)[0].score for q in queries]

    assert scores == sorted(scores)
    assert len(set(scores)) == len(scores)

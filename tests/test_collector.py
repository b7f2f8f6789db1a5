from __future__ import annotations

import asyncio

import pytest
from conftest import NO_RESULTS_HTML, FakeRegistry

from jwid_collector.collector import SearchStatus, assemble_candidates, dummy_record, search_work
from jwid_collector.errors import MissingTitleError
from jwid_collector.models import Query, WorkRecord


BUTTERFLY = Query(title='Butter-Fly', composer='千綿偉功', lyricist='和田光司')


def _search(registry: FakeRegistry, query: Query, **kwargs) -> object:
    async def _run():
        async with registry:
            return await search_work(registry, query, **kwargs)

    return asyncio.run(_run())


def test_first_strategy_finds_the_work(result_html: str, detail_html: str) -> None:
    registry = FakeRegistry([result_html], {0: detail_html})

    outcome = _search(registry, BUTTERFLY)

    assert outcome.status is SearchStatus.FOUND
    assert outcome.strategy == 'title+lyricist+composer'
    assert outcome.record is not None
    assert outcome.record.work_code == '036-5421-3'
    assert outcome.record.alternatives == []
    assert len(registry.submitted) == 1
    assert registry.opened == [0]


def test_falls_through_to_next_strategy(result_html: str, detail_html: str) -> None:
    registry = FakeRegistry([NO_RESULTS_HTML, result_html], {0: detail_html})

    outcome = _search(registry, BUTTERFLY)

    assert outcome.status is SearchStatus.FOUND
    assert outcome.strategy == 'title+composer'
    assert [a.name for a in registry.submitted] == ['title+lyricist+composer', 'title+composer']


def test_missing_result_table_moves_to_next_strategy(result_html: str, detail_html: str) -> None:
    registry = FakeRegistry(['<html><body></body></html>', result_html], {0: detail_html})

    outcome = _search(registry, BUTTERFLY)

    assert outcome.status is SearchStatus.FOUND
    assert len(registry.submitted) == 2


def test_no_match_after_all_strategies() -> None:
    registry = FakeRegistry([NO_RESULTS_HTML])

    outcome = _search(registry, BUTTERFLY)

    assert outcome.status is SearchStatus.NO_MATCH
    assert outcome.record is None
    assert len(registry.submitted) == 4


def test_query_without_title_is_rejected() -> None:
    registry = FakeRegistry([NO_RESULTS_HTML])

    with pytest.raises(MissingTitleError):
        _search(registry, Query(title='', composer='千綿偉功'))
    assert registry.submitted == []


def test_detail_timeout_skips_candidate(result_html: str) -> None:
    registry = FakeRegistry([result_html], timeouts={0})

    outcome = _search(registry, BUTTERFLY)

    assert outcome.status is SearchStatus.NO_MATCH
    assert registry.opened == [0] * 4


def test_min_score_filters_weak_candidates(result_html: str, detail_html: str) -> None:
    registry = FakeRegistry([result_html], {0: detail_html})

    outcome = _search(registry, Query(title='Butter-Fly'), min_score=4)

    assert outcome.status is SearchStatus.NO_MATCH
    assert registry.opened == []


def test_assemble_candidates_makes_rest_alternatives() -> None:
    first = WorkRecord(work_code='1', title='A')
    second = WorkRecord(work_code='2', title='B')
    duplicate = WorkRecord(work_code='1', title='A again')

    main = assemble_candidates([first, second, duplicate])

    assert main is first
    assert [a.work_code for a in main.alternatives] == ['2']
    assert assemble_candidates([]) is None


def test_dummy_record_is_deterministic() -> None:
    record = dummy_record(Query(title='Song', artist='Band'), 2)

    assert record.work_code == '100002'
    assert record.title == 'Song'
    assert record.artist == 'Band'
    assert record.composer == '不明'
    assert record.usage_permissions.performance.concert

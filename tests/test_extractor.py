from __future__ import annotations

import pytest

from jwid_collector.errors import DetailTableNotFoundError
from jwid_collector.extractor import USAGE_TABS, extract_work, parse_detail_page
from jwid_collector.models import Query


QUERY = Query(title='Butter-Fly', artist='和田光司')


def test_base_info_and_labelled_fields(detail_html: str) -> None:
    record = parse_detail_page(detail_html, QUERY)

    assert record.work_code == '036-5421-3'
    assert record.export_code == '03654213'
    assert record.title == 'BUTTER-FLY'
    assert record.duration == '04:18'
    assert record.nationality == '内国作品'
    assert record.source_type == 'PO(出版者作品届)'
    assert record.work_type == '歌曲'
    assert record.creation_date == '1999-02-21'
    assert record.usage_category == '演奏 録音 ビデオ'
    assert record.artist == '和田光司'
    assert record.raw_html.startswith('<!DOCTYPE html><html lang="ja">')


def test_rights_holders_first_of_each_role_wins(detail_html: str) -> None:
    record = parse_detail_page(detail_html, QUERY)

    assert [(r.name, r.role) for r in record.rights] == [
        ('和田　光司', '作詞'),
        ('千綿　偉功', '作曲'),
        ('補助　作家', '作詞'),
        ('テスト音楽出版', '出版者'),
    ]
    assert record.rights[0].share == '全部'
    assert record.rights[0].society == 'JASRAC'
    assert record.lyricist == '和田　光司'
    assert record.composer == '千綿　偉功'
    assert record.arranger == ''
    assert record.publisher == 'テスト音楽出版'


def test_usage_tab_tables_are_not_rights(detail_html: str) -> None:
    record = parse_detail_page(detail_html, QUERY)
    assert all(r.name not in ('演奏権', '録音権', '公衆送信権') for r in record.rights)


def test_usage_permissions_follow_managed_statement(detail_html: str) -> None:
    permissions = parse_detail_page(detail_html, QUERY).usage_permissions

    assert permissions.performance.concert
    assert permissions.reproduction.recording
    assert not permissions.transmission.broadcast
    assert not permissions.performance.bgm
    assert permissions.granted() == [('performance', 'concert'), ('reproduction', 'recording')]
    assert set(permissions.management_details) == {'演奏', '録音', '放送'}
    assert '演奏権' in permissions.management_details['演奏']
    assert ' | ' in permissions.management_details['放送']


def test_usage_tabs_cover_every_flag_but_bgm() -> None:
    flags = {(tab.category, tab.flag) for tab in USAGE_TABS}
    assert len(USAGE_TABS) == 17
    assert ('performance', 'bgm') not in flags
    assert len({tab.tab_id for tab in USAGE_TABS}) == 17


def test_missing_sections_leave_fields_empty() -> None:
    html = (
        '<html><body><table class="detail">'
        '<tr><th>権利者情報</th></tr><tr><th>No.</th></tr>'
        '</table></body></html>'
    )

    record = parse_detail_page(html, Query(title='x'))

    assert record.work_code == ''
    assert record.title == ''
    assert record.rights == []
    assert record.usage_permissions.granted() == []


def test_page_without_detail_table() -> None:
    html = '<html><body><div class="baseinfo--name">Song</div></body></html>'

    with pytest.raises(DetailTableNotFoundError):
        parse_detail_page(html, QUERY)
    assert extract_work(html, QUERY) is None


def test_page_without_work_code_is_not_a_candidate(detail_html: str) -> None:
    html = detail_html.replace('<strong>036-5421-3</strong>', '')

    assert parse_detail_page(html, QUERY).title == 'BUTTER-FLY'
    assert extract_work(html, QUERY) is None


def test_nested_table_rows_are_not_rights_holders() -> None:
    html = (
        '<html><body><table class="detail">'
        '<tr><th>権利者情報</th></tr><tr><th>No.</th></tr>'
        '<tr><td>1</td><td>作家A</td><td>作詞</td><td>全部</td>'
        '<td>JASRAC<table><tr><td>2</td><td>作家B</td><td>作曲</td></tr></table></td></tr>'
        '</table></body></html>'
    )

    record = parse_detail_page(html, QUERY)

    assert [(r.name, r.role) for r in record.rights] == [('作家A', '作詞')]
    assert record.lyricist == '作家A'
    assert record.composer == ''

"""Detail-page scraping: base info, rights holders and usage-permission tabs.

Every field is read independently. A missing or malformed section leaves
its fields empty and is logged; only a page without the detail table is
rejected outright.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from bs4 import BeautifulSoup, Tag

from jwid_collector.errors import DetailTableNotFoundError
from jwid_collector.models import Query, RightsHolder, UsagePermissions, WorkRecord
from jwid_collector.normalize import minimize_html


__all__ = ['USAGE_TABS', 'extract_work', 'parse_detail_page']

logger = logging.getLogger(__name__)

DETAIL_TABLE_SELECTOR = 'table.detail'
WORK_CODE_SELECTOR = 'div.baseinfo--code div.detail_iPhone_link > strong'
TITLE_SELECTOR = 'div.baseinfo--name'
DURATION_SELECTOR = 'div.baseinfo--time'
STATUS_SELECTOR = 'div.baseinfo--status > dl'
ATTRIBUTE_SELECTOR = 'div.baseinfo dl.baseinfo--list > div'
CONSENT_SELECTOR = 'dl.consent dd.txt p'

# Header rows of the rights table
_RIGHTS_HEADER_ROWS = 2
_RIGHTS_MIN_CELLS = 3

MANAGED_MARKER = 'JASRACが著作権を管理しています'

# Label substrings, matched instead of positions so column order does not matter
_STATUS_LABELS = {
    '内外': 'nationality',
    '出典': 'source_type',
}
_ATTRIBUTE_LABELS = {
    '作品種別': 'work_type',
    '作成年月日': 'creation_date',
    '分野': 'usage_category',
    '出版社': 'publisher',
}
# Role substring -> WorkRecord field; first holder of a role wins
_ROLE_FIELDS = {
    '作詞': 'lyricist',
    '作曲': 'composer',
    '編曲': 'arranger',
    '出版': 'publisher',
}


class UsageTab(NamedTuple):
    tab_id: str
    category: str
    flag: str
    label: str


USAGE_TABS: tuple[UsageTab, ...] = (
    # Performance
    UsageTab('tab-00-00', 'performance', 'concert', '演奏'),
    UsageTab('tab-99-03', 'performance', 'karaoke', '社交場/カラオケ'),
    # Reproduction
    UsageTab('tab-00-01', 'reproduction', 'recording', '録音'),
    UsageTab('tab-00-02', 'reproduction', 'publication', '出版'),
    UsageTab('tab-00-03', 'reproduction', 'rental', '貸与'),
    UsageTab('tab-00-04', 'reproduction', 'video', 'ビデオ'),
    UsageTab('tab-00-05', 'reproduction', 'movie', '映画'),
    # Public transmission
    UsageTab('tab-00-06', 'transmission', 'broadcast', '放送'),
    UsageTab('tab-00-07', 'transmission', 'distribution', '配信'),
    UsageTab('tab-00-08', 'transmission', 'karaoke_comm', '通カラ'),
    # Advertisement
    UsageTab('tab-01-00', 'advertisement', 'cm', '広告/CM送録'),
    UsageTab('tab-01-01', 'advertisement', 'movie_ad', '広告/映録'),
    UsageTab('tab-01-02', 'advertisement', 'recording_ad', '広告/録音'),
    UsageTab('tab-01-03', 'advertisement', 'video_ad', '広告/ビデオ'),
    UsageTab('tab-01-04', 'advertisement', 'publication_ad', '広告/出版'),
    # Game
    UsageTab('tab-02-00', 'game', 'recording_game', 'ゲーム/録音'),
    UsageTab('tab-02-01', 'game', 'video_game', 'ゲーム/ビデオ'),
)


def _text(node: Tag | None) -> str:
    return node.get_text().strip() if node is not None else ''


def _in_usage_tab(node: Tag) -> bool:
    return any(
        str(parent.get('id', '')).startswith('tab-') for parent in node.parents
    )


def _labelled_values(soup: BeautifulSoup, selector: str) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for item in soup.select(selector):
        label, value = item.find('dt'), item.find('dd')
        if label is None or value is None:
            continue
        pairs.append((_text(label), _text(value)))
    return pairs


def _apply_labels(
    record: WorkRecord, pairs: list[tuple[str, str]], labels: dict[str, str]
) -> None:
    for label, value in pairs:
        for needle, attr in labels.items():
            if needle in label:
                setattr(record, attr, value)
                logger.debug('%s: %s', attr, value)
                break


def _extract_base_info(soup: BeautifulSoup, record: WorkRecord) -> None:
    record.work_code = _text(soup.select_one(WORK_CODE_SELECTOR))
    record.title = _text(soup.select_one(TITLE_SELECTOR))
    record.duration = _text(soup.select_one(DURATION_SELECTOR))


def _extract_rights(soup: BeautifulSoup, record: WorkRecord) -> None:
    table = next(
        (t for t in soup.select(DETAIL_TABLE_SELECTOR) if not _in_usage_tab(t)),
        None,
    )
    if table is None:
        logger.info('Rights table not found outside usage tabs')
        return

    # Own rows only; a nested table must not shift the header offset
    rows = [tr for tr in table.find_all('tr') if tr.find_parent('table') is table]
    for i, row in enumerate(rows[_RIGHTS_HEADER_ROWS:], start=_RIGHTS_HEADER_ROWS + 1):
        try:
            cells = [td.get_text().strip() for td in row.find_all('td', recursive=False)]
            if len(cells) < _RIGHTS_MIN_CELLS:
                continue
            holder = RightsHolder(
                name=cells[1],
                role=cells[2],
                share=cells[3] if len(cells) > 3 else '',
                society=cells[4] if len(cells) > 4 else '',
            )
        except (AttributeError, IndexError) as exc:
            logger.info('Skipping rights row %d: %s', i, exc)
            continue

        record.rights.append(holder)
        for needle, attr in _ROLE_FIELDS.items():
            if needle in holder.role and not getattr(record, attr):
                setattr(record, attr, holder.name)
                break


def extract_usage_permissions(soup: BeautifulSoup) -> UsagePermissions:
    permissions = UsagePermissions()
    for tab in USAGE_TABS:
        panel = soup.find(id=tab.tab_id)
        if not isinstance(panel, Tag):
            continue
        statement = _text(panel.select_one(CONSENT_SELECTOR))
        permissions.set_flag(tab.category, tab.flag, MANAGED_MARKER in statement)
        permissions.management_details[tab.label] = ' | '.join(
            row.get_text().strip() for row in panel.select(f'{DETAIL_TABLE_SELECTOR} tr')
        )
    return permissions


def parse_detail_page(html: str, query: Query) -> WorkRecord:
    """Build a WorkRecord from a detail page.

    Raises DetailTableNotFoundError when the page has no detail table.
    """
    soup = BeautifulSoup(html, 'html.parser')
    if soup.select_one(DETAIL_TABLE_SELECTOR) is None:
        raise DetailTableNotFoundError('detail table not found')

    record = WorkRecord(work_code='', title='', artist=query.artist or '')
    record.raw_html = minimize_html(html)

    steps = (
        ('base info', lambda: _extract_base_info(soup, record)),
        (
            'status',
            lambda: _apply_labels(record, _labelled_values(soup, STATUS_SELECTOR), _STATUS_LABELS),
        ),
        (
            'attributes',
            lambda: _apply_labels(
                record, _labelled_values(soup, ATTRIBUTE_SELECTOR), _ATTRIBUTE_LABELS
            ),
        ),
        ('rights', lambda: _extract_rights(soup, record)),
    )
    for name, step in steps:
        try:
            step()
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning('Could not read %s from detail page: %s', name, exc)

    try:
        record.usage_permissions = extract_usage_permissions(soup)
    except (AttributeError, TypeError, ValueError) as exc:
        logger.warning('Could not read usage permissions: %s', exc)

    logger.info('Extracted work %s (%s)', record.work_code or '?', record.title)
    return record


def extract_work(html: str, query: Query) -> WorkRecord | None:
    """Like parse_detail_page, but returns None for a page that is not a usable work.

    That is a page without the detail table, or one whose work code cannot be
    read: results are keyed by work code.
    """
    try:
        record = parse_detail_page(html, query)
    except DetailTableNotFoundError as exc:
        logger.warning('No work info on detail page: %s', exc)
        return None
    if not record.work_code:
        logger.warning('Skipping detail page without a work code (title: %s)', record.title)
        return None
    return record

"""Usage-report export: row building, validation, TSV rendering, cp932 files.

Everything here is pure except :func:`write_export`. Column behaviour comes
from a rules table (``tsv_rules.COLUMN_RULES`` unless another is passed).
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from jwid_collector import tsv_rules
from jwid_collector.errors import ExportFilenameError
from jwid_collector.models import UsagePermissions, WorkRecord
from jwid_collector.tsv_rules import COLUMN_RULES, ColumnRule


__all__ = [
    'SUBMISSION_ENCODING',
    'ValidationIssue',
    'build_rows',
    'decode_submission',
    'encode_submission',
    'export_filename',
    'format_usage_permissions',
    'parse_tsv',
    'render_detailed_tsv',
    'render_tsv',
    'validate_rows',
    'write_export',
]

SUBMISSION_ENCODING = 'cp932'

Row = dict[str, str]
Rules = Mapping[str, ColumnRule]

_LICENSE_CODE_RE = re.compile(r'^[A-Za-z0-9]{10}$')
_YEAR_MONTH_RE = re.compile(r'^\d{4}(0[1-9]|1[0-2])$')
_SUFFIX_RE = re.compile(r'^[A-Za-z0-9]{0,100}$')
_CELL_BREAK_RE = re.compile(r'[\t\r\n]+')


@dataclass(frozen=True)
class ValidationIssue:
    row: int
    column: str
    message: str


def _record_values(record: WorkRecord, key_code: int) -> Row:
    return {
        tsv_rules.KEY_CODE: str(key_code),
        tsv_rules.WORK_CODE: record.export_code,
        tsv_rules.TITLE: record.title,
        tsv_rules.LYRICIST: record.lyricist,
        tsv_rules.COMPOSER: record.composer,
        tsv_rules.ARRANGER: record.arranger,
        tsv_rules.ARTIST: record.artist,
    }


def build_rows(
    records: Sequence[WorkRecord],
    overrides: Mapping[int, Mapping[str, str]] | None = None,
    rules: Rules = COLUMN_RULES,
) -> list[Row]:
    """Map records to report rows, one dict per record keyed by header.

    Precedence: rule default < scraped value < override (keyed by 0-based
    row index). Fixed-value columns end at their fixed value regardless.
    """
    overrides = overrides or {}
    rows: list[Row] = []
    for i, record in enumerate(records):
        row: Row = {header: rule.default_value for header, rule in rules.items()}
        for header, value in _record_values(record, i + 1).items():
            if header in row and value:
                row[header] = value
        for header, value in overrides.get(i, {}).items():
            if header in row:
                row[header] = value
        for header, rule in rules.items():
            if rule.fixed_value is not None:
                row[header] = rule.fixed_value
        rows.append(row)
    return rows


def validate_rows(
    rows: Sequence[Mapping[str, str]],
    rules: Rules = COLUMN_RULES,
) -> list[ValidationIssue]:
    """Check rows against the rules. Issues are warnings; export still works."""
    issues: list[ValidationIssue] = []
    for n, row in enumerate(rows, 1):
        for column, rule in rules.items():
            value = row.get(column, '')

            def _issue(message: str) -> None:
                issues.append(ValidationIssue(row=n, column=column, message=message))

            if rule.required and value == '':
                _issue('required value is missing')
            if rule.requires_one_of and value == '' and row.get(rule.requires_one_of, '') == '':
                _issue(f'either this or {rule.requires_one_of} is required')
            if rule.required_when and value == '':
                other, triggers = rule.required_when
                if row.get(other, '') in triggers:
                    _issue(f'required when {other} is "{row.get(other)}"')
            if rule.fixed_value is not None and value not in ('', rule.fixed_value):
                _issue(f'must be "{rule.fixed_value}"')
            if rule.valid_values and value != '' and value not in rule.valid_values:
                _issue(f'must be one of {", ".join(rule.valid_values)}')
    return issues


def _clean_cell(value: str) -> str:
    return _CELL_BREAK_RE.sub(' ', value)


def render_tsv(
    rows: Sequence[Mapping[str, str]],
    headers: Sequence[str] = tsv_rules.EXPECTED_HEADERS,
    include_header: bool = True,
) -> str:
    """Tab-separated text with exactly ``len(headers)`` fields per line."""
    lines: list[str] = []
    if include_header:
        lines.append('\t'.join(headers))
    for row in rows:
        lines.append('\t'.join(_clean_cell(row.get(h, '')) for h in headers))
    return '\n'.join(lines)


def parse_tsv(text: str, headers: Sequence[str] = tsv_rules.EXPECTED_HEADERS) -> list[Row]:
    """Read report text back into rows; a leading header line is skipped."""
    rows: list[Row] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        cells = line.split('\t')
        if [c.strip() for c in cells] == list(headers):
            continue
        cells += [''] * (len(headers) - len(cells))
        rows.append(dict(zip(headers, cells)))
    return rows


def encode_submission(text: str) -> bytes:
    """Encode for the registry's legacy toolchain; unmappable characters become '?'."""
    return text.encode(SUBMISSION_ENCODING, errors='replace')


def decode_submission(data: bytes) -> str:
    try:
        return data.decode(SUBMISSION_ENCODING)
    except UnicodeDecodeError as exc:
        raise ValueError(f'file is not valid {SUBMISSION_ENCODING}: {exc}') from exc


def export_filename(license_code: str, year_month: str, suffix: str = '') -> str:
    """``<10-char license code><YYYYMM><optional alnum suffix>.txt``."""
    if not _LICENSE_CODE_RE.match(license_code):
        raise ExportFilenameError('license code must be 10 alphanumeric characters')
    if not _YEAR_MONTH_RE.match(year_month):
        raise ExportFilenameError('usage month must be YYYYMM, e.g. 202404')
    if not _SUFFIX_RE.match(suffix):
        raise ExportFilenameError('suffix must be at most 100 alphanumeric characters')
    return f'{license_code}{year_month}{suffix}.txt'


def write_export(
    directory: Path,
    rows: Sequence[Mapping[str, str]],
    license_code: str,
    year_month: str,
    suffix: str = '',
    include_header: bool = False,
) -> Path:
    """Write the cp932 report file and return its path."""
    path = directory / export_filename(license_code, year_month, suffix)
    directory.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_submission(render_tsv(rows, include_header=include_header)))
    return path


# ── Detailed audit export ──

_PERMISSION_LABELS: dict[tuple[str, str], str] = {
    ('performance', 'concert'): '演奏:演奏会等',
    ('performance', 'bgm'): '演奏:上映/BGM',
    ('performance', 'karaoke'): '演奏:社交場/カラオケ',
    ('reproduction', 'recording'): '複製:録音',
    ('reproduction', 'publication'): '複製:出版',
    ('reproduction', 'rental'): '複製:貸与',
    ('reproduction', 'video'): '複製:ビデオ',
    ('reproduction', 'movie'): '複製:映画',
    ('transmission', 'broadcast'): '公衆送信:放送',
    ('transmission', 'distribution'): '公衆送信:配信',
    ('transmission', 'karaoke_comm'): '公衆送信:通カラ',
    ('advertisement', 'cm'): '広告:CM送録',
    ('advertisement', 'movie_ad'): '広告:映録',
    ('advertisement', 'recording_ad'): '広告:録音',
    ('advertisement', 'video_ad'): '広告:ビデオ',
    ('advertisement', 'publication_ad'): '広告:出版',
    ('game', 'recording_game'): 'ゲーム:録音',
    ('game', 'video_game'): 'ゲーム:ビデオ',
}

DETAILED_HEADERS = (
    '作品コード',
    'タイトル',
    '作詞者',
    '作曲者',
    '編曲者',
    'アーティスト',
    '演奏時間',
    '作品種別',
    '国籍区分',
    '作成年月日',
    '利用分野',
    '出版社',
    '利用許可情報',
    '権利者情報',
)


def format_usage_permissions(permissions: UsagePermissions) -> str:
    return '|'.join(_PERMISSION_LABELS[key] for key in permissions.granted())


def _format_rights(record: WorkRecord) -> str:
    return '|'.join(f'{r.name}({r.role},{r.share},{r.society})' for r in record.rights)


def render_detailed_tsv(records: Sequence[WorkRecord]) -> str:
    """Everything scraped per work, for review rather than submission."""
    rows = [
        dict(
            zip(
                DETAILED_HEADERS,
                (
                    r.work_code,
                    r.title,
                    r.lyricist,
                    r.composer,
                    r.arranger,
                    r.artist,
                    r.duration,
                    r.work_type,
                    r.nationality,
                    r.creation_date,
                    r.usage_category,
                    r.publisher,
                    format_usage_permissions(r.usage_permissions),
                    _format_rights(r),
                ),
            )
        )
        for r in records
    ]
    return render_tsv(rows, headers=DETAILED_HEADERS)

"""Column rules of the registry's usage-report layout.

The header names are the registry's own and must not be translated. The
export formatter and validator read this table; nothing else hardcodes
column behaviour.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ColumnRule:
    required: bool
    description: str
    fixed_value: str | None = None
    default_value: str = ''
    valid_values: tuple[str, ...] = ()
    # At least one of this column and the named one must be filled
    requires_one_of: str | None = None
    # Required when the named column holds one of the given values
    required_when: tuple[str, tuple[str, ...]] | None = None
    read_only: bool = False


KEY_CODE = 'インターフェイスキーコード'
WORK_CODE = 'ＪＡＳＲＡＣ作品コード'
TITLE = '原題名'
LYRICIST = '作詞者名'
COMPOSER = '作曲者名'
ARRANGER = '編曲者名'
ARTIST = 'アーティスト名'
IVT = 'ＩＶＴ区分'
ORIGINAL_OR_TRANSLATED = '原詞訳詞区分'

COLUMN_RULES: dict[str, ColumnRule] = {
    KEY_CODE: ColumnRule(
        required=True,
        description='Per-row key code, numbered from 1.',
        read_only=True,
    ),
    'コンテンツ区分': ColumnRule(required=False, description='Leave blank.', read_only=True),
    'コンテンツ枝番': ColumnRule(
        required=True,
        description='Always the string "000".',
        fixed_value='000',
        read_only=True,
    ),
    'メドレー区分': ColumnRule(required=False, description='Leave blank.', read_only=True),
    'メドレー枝番': ColumnRule(
        required=True,
        description='Always the string "000".',
        fixed_value='000',
        read_only=True,
    ),
    'コレクトコード': ColumnRule(required=False, description='Leave blank.', read_only=True),
    WORK_CODE: ColumnRule(
        required=False,
        description='Registry work code without hyphens; blank only if unknown.',
    ),
    TITLE: ColumnRule(required=True, description='Title as written in the registry.'),
    '副題・邦題': ColumnRule(required=False, description='Subtitle or Japanese title, if any.'),
    LYRICIST: ColumnRule(
        required=False,
        description='Lyricist as written in the registry; this or the composer is required.',
        requires_one_of=COMPOSER,
    ),
    '補作詞・訳詞者名': ColumnRule(
        required=False, description='Supplementary lyricist or translator, if any.'
    ),
    COMPOSER: ColumnRule(
        required=False,
        description='Composer as written in the registry; this or the lyricist is required.',
        requires_one_of=LYRICIST,
    ),
    ARRANGER: ColumnRule(required=False, description='Arranger, if any.'),
    ARTIST: ColumnRule(required=False, description='Performing artist.'),
    '情報料（税抜）': ColumnRule(
        required=True,
        description='Always "0".',
        fixed_value='0',
        read_only=True,
    ),
    IVT: ColumnRule(
        required=True,
        description='I = music only, V = music and lyrics, T = lyrics only.',
        default_value='I',
        valid_values=('I', 'V', 'T'),
    ),
    ORIGINAL_OR_TRANSLATED: ColumnRule(
        required=False,
        description='Required when IVT is V or T: 1 original, 2 translated, 3 unknown.',
        valid_values=('1', '2', '3'),
        required_when=(IVT, ('V', 'T')),
    ),
    'IL区分': ColumnRule(required=False, description='Leave blank.', read_only=True),
    'リクエスト回数': ColumnRule(
        required=True,
        description='Always "0".',
        fixed_value='0',
        read_only=True,
    ),
}

EXPECTED_HEADERS: tuple[str, ...] = tuple(COLUMN_RULES)

GENERAL_NOTES = (
    'Remove the header row before submitting the report.',
    'Works whose copyright has expired must be reported too.',
)

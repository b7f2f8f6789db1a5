from __future__ import annotations

from jwid_collector.models import Query
from jwid_collector.strategies import RoleCode, build_strategies


def test_title_only_query_has_single_strategy() -> None:
    attempts = build_strategies(Query(title='Butter-Fly'))

    assert [a.name for a in attempts] == ['title']
    assert attempts[0].persons == ()
    assert attempts[0].artist is None


def test_full_query_tries_specific_combinations_first() -> None:
    query = Query(title='Butter-Fly', artist='和田光司', composer='千綿偉功', lyricist='和田光司')

    attempts = build_strategies(query)

    assert [a.name for a in attempts] == [
        'title+lyricist+composer',
        'title+composer',
        'title+lyricist',
        'title+artist',
        'title',
    ]
    first = attempts[0]
    assert first.persons == (('和田光司', RoleCode.LYRICIST), ('千綿偉功', RoleCode.COMPOSER))
    assert first.artist == '和田光司'
    assert attempts[1].persons == (('千綿偉功', RoleCode.COMPOSER),)
    assert attempts[2].persons == (('和田光司', RoleCode.LYRICIST),)
    assert attempts[3].artist == '和田光司'


def test_composer_only_query() -> None:
    attempts = build_strategies(Query(title='Song', composer='Someone'))
    assert [a.name for a in attempts] == ['title+composer', 'title']


def test_missing_title_yields_no_strategies() -> None:
    assert build_strategies(Query(title='', composer='Someone')) == []


def test_role_codes_match_registry_values() -> None:
    assert int(RoleCode.LYRICIST) == 1
    assert int(RoleCode.COMPOSER) == 2


def test_describe_lists_submitted_fields() -> None:
    attempt = build_strategies(Query(title='Song', composer='A', artist='B'))[0]
    assert attempt.describe() == 'title(Song) + composer(A)'

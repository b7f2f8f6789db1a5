from __future__ import annotations

from jwid_collector.normalize import minimize_html, normalize_text


def test_normalize_folds_fullwidth_ascii_and_case() -> None:
    assert normalize_text('Ｂｕｔｔｅｒ－Ｆｌｙ') == 'butter-fly'
    assert normalize_text('ＡＢＣ１２３') == 'abc123'


def test_normalize_removes_all_whitespace() -> None:
    assert normalize_text('  和田　光司 \t\n') == '和田光司'
    assert normalize_text('Butter Fly') == 'butterfly'


def test_normalize_leaves_kana_and_kanji_alone() -> None:
    assert normalize_text('バタフライ') == 'バタフライ'
    assert normalize_text('千綿偉功') == '千綿偉功'


def test_normalize_is_idempotent() -> None:
    for text in ('Ｂｕｔｔｅｒ－Ｆｌｙ', '  和田　光司 ', 'MiXeD Case！', ''):
        once = normalize_text(text)
        assert normalize_text(once) == once


def test_minimize_html_collapses_whitespace_between_tags() -> None:
    html = '<div>\n    <p>  text  </p>\n</div>'
    assert minimize_html(html) == '<div><p>text</p></div>'

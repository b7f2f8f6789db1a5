"""Text canonicalization shared by query fields and scraped cell text."""

from __future__ import annotations

import re


__all__ = ['minimize_html', 'normalize_text']

# Full-width ASCII variants: ！ (U+FF01) through ～ (U+FF5E)
_FULLWIDTH_RE = re.compile('[！-～]')
_FULLWIDTH_OFFSET = 0xFEE0
_WHITESPACE_RE = re.compile(r'\s+')


def normalize_text(text: str) -> str:
    """Fold full-width ASCII to half-width, drop all whitespace, lower-case."""
    result = _FULLWIDTH_RE.sub(lambda m: chr(ord(m.group()) - _FULLWIDTH_OFFSET), text)
    result = _WHITESPACE_RE.sub('', result)
    return result.lower()


def minimize_html(html: str) -> str:
    """Collapse whitespace runs and drop whitespace between tags."""
    result = _WHITESPACE_RE.sub(' ', html)
    result = re.sub(r'\s*<', '<', result)
    return re.sub(r'>\s*', '>', result)

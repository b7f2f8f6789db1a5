"""Ordered search-field combinations, most specific first."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from jwid_collector.models import Query


__all__ = ['RoleCode', 'SearchAttempt', 'build_strategies']


class RoleCode(IntEnum):
    """Registry-internal role codes for the person search slots."""

    LYRICIST = 1
    COMPOSER = 2


@dataclass(frozen=True)
class SearchAttempt:
    """The subset of query fields submitted in one search."""

    name: str
    title: str
    persons: tuple[tuple[str, RoleCode], ...] = ()
    artist: str | None = None

    def describe(self) -> str:
        parts = [f'title({self.title})']
        parts.extend(f'{role.name.lower()}({name})' for name, role in self.persons)
        if self.artist:
            parts.append(f'artist({self.artist})')
        return ' + '.join(parts)


def build_strategies(query: Query) -> list[SearchAttempt]:
    """Return the search attempts applicable to *query*, in priority order.

    Broad queries over-match on the registry, so role-tagged co-authors are
    tried first and the laxer combinations only when those return nothing.
    An empty list means the query has no title and cannot be searched.
    """
    if not query.title:
        return []

    attempts: list[SearchAttempt] = []
    if query.lyricist and query.composer:
        attempts.append(
            SearchAttempt(
                name='title+lyricist+composer',
                title=query.title,
                persons=(
                    (query.lyricist, RoleCode.LYRICIST),
                    (query.composer, RoleCode.COMPOSER),
                ),
                artist=query.artist,
            )
        )
    if query.composer:
        attempts.append(
            SearchAttempt(
                name='title+composer',
                title=query.title,
                persons=((query.composer, RoleCode.COMPOSER),),
            )
        )
    if query.lyricist:
        attempts.append(
            SearchAttempt(
                name='title+lyricist',
                title=query.title,
                persons=((query.lyricist, RoleCode.LYRICIST),),
            )
        )
    if query.artist:
        attempts.append(
            SearchAttempt(name='title+artist', title=query.title, artist=query.artist)
        )
    attempts.append(SearchAttempt(name='title', title=query.title))
    return attempts

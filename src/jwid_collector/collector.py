"""Per-query orchestration: strategies → submit → rank → detail pages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from jwid_collector.errors import (
    FormNotFoundError,
    MissingTitleError,
    RegistryTimeoutError,
    ResultTableNotFoundError,
)
from jwid_collector.extractor import extract_work
from jwid_collector.models import Query, UsagePermissions, WorkRecord
from jwid_collector.ranker import DEFAULT_LIMIT, parse_result_page, rank_rows
from jwid_collector.registry import Registry
from jwid_collector.strategies import SearchAttempt, build_strategies


logger = logging.getLogger(__name__)


class SearchStatus(Enum):
    FOUND = 'found'
    NO_MATCH = 'no-match'


@dataclass
class SearchOutcome:
    query: Query
    status: SearchStatus
    record: WorkRecord | None = None
    strategy: str | None = None


async def search_work(
    registry: Registry,
    query: Query,
    min_score: int = 0,
    limit: int = DEFAULT_LIMIT,
) -> SearchOutcome:
    """Run the search strategies for *query* until one yields a work record.

    The first candidate becomes the primary record and the others its
    alternatives. Raises MissingTitleError for a query without a title;
    registry timeouts propagate to the caller.
    """
    strategies = build_strategies(query)
    if not strategies:
        raise MissingTitleError('query has no title; cannot search')

    logger.info('%d search strategies available for "%s"', len(strategies), query.title)
    for i, attempt in enumerate(strategies, 1):
        logger.info('Strategy %d: %s', i, attempt.describe())
        try:
            record = await _try_attempt(registry, query, attempt, min_score, limit)
        except (FormNotFoundError, ResultTableNotFoundError) as exc:
            logger.warning('Strategy %d failed: %s', i, exc)
            continue

        if record is not None:
            logger.info(
                'Strategy %d matched %s (%s), %d alternatives',
                i,
                record.work_code,
                record.title,
                len(record.alternatives),
            )
            return SearchOutcome(
                query=query,
                status=SearchStatus.FOUND,
                record=record,
                strategy=attempt.name,
            )
        logger.info('Strategy %d found nothing; trying the next one', i)

    logger.info('All strategies exhausted for "%s"', query.title)
    return SearchOutcome(query=query, status=SearchStatus.NO_MATCH)


async def _try_attempt(
    registry: Registry,
    query: Query,
    attempt: SearchAttempt,
    min_score: int,
    limit: int,
) -> WorkRecord | None:
    page = parse_result_page(await registry.submit(attempt))
    if page.no_results:
        logger.info('Registry reported no results')
        return None

    ranked = rank_rows(page.rows, query, limit=limit)
    logger.info('%d result rows, %d candidates', len(page.rows), len(ranked))

    candidates: list[WorkRecord] = []
    for scored in ranked:
        if scored.score < min_score:
            logger.info(
                'Row %d below minimum score (%d < %d)',
                scored.index + 1,
                scored.score,
                min_score,
            )
            continue
        try:
            html = await registry.open_detail(scored.index)
        except RegistryTimeoutError as exc:
            logger.warning('Skipping candidate row %d: %s', scored.index + 1, exc)
            continue
        if html is None:
            continue
        record = extract_work(html, query)
        if record is not None:
            candidates.append(record)

    return assemble_candidates(candidates)


def assemble_candidates(candidates: list[WorkRecord]) -> WorkRecord | None:
    """First candidate is primary; the rest become its alternatives."""
    if not candidates:
        return None
    main, *rest = candidates
    main.alternatives = []
    for alt in rest:
        main.add_alternative(alt)
    return main


def dummy_record(query: Query, index: int) -> WorkRecord:
    """Placeholder record for exercising the pipeline without a browser."""
    permissions = UsagePermissions()
    for category, flag in (
        ('performance', 'concert'),
        ('performance', 'bgm'),
        ('performance', 'karaoke'),
        ('reproduction', 'recording'),
        ('reproduction', 'video'),
        ('transmission', 'broadcast'),
        ('transmission', 'distribution'),
    ):
        permissions.set_flag(category, flag, True)

    return WorkRecord(
        work_code=str(100000 + index),
        title=query.title,
        lyricist=query.lyricist or '不明',
        composer=query.composer or '不明',
        artist=query.artist or '不明',
        duration='03:45',
        work_type='歌曲',
        nationality='内国作品',
        creation_date='2020-01-01',
        source_type='PO(出版者作品届)',
        usage_category='演奏',
        usage_permissions=permissions,
    )

# ABOUTME: Reconciles harvested backlinks against the stored ACS database
# ABOUTME: Classifies only identifiers never seen before and records the ones that turn out not to be ACS pages

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping

from acs_database.core.identifiers import sort_key
from acs_database.core.models import AcsRecord, PhaseSummary
from acs_database.extraction.base import FetchError
from acs_database.persistence.store import MergeResult, ResultDatabase
from acs_database.utils.logging import get_logger

ClassifyFn = Callable[[str], Awaitable[AcsRecord | None]]

logger = get_logger(__name__)


def reconciliation_candidates(existing: ResultDatabase, backlinks: Mapping[str, Iterable[str]]) -> list[str]:
    """Identifiers linked from any component that the database has not already seen, sorted."""
    linked: set[str] = set()
    for identifiers in backlinks.values():
        linked.update(identifiers)
    return sorted(linked - existing.known_identifiers(), key=sort_key)


async def reconcile(
    existing: ResultDatabase,
    backlinks: Mapping[str, Iterable[str]],
    classify: ClassifyFn,
    summary: PhaseSummary | None = None,
) -> tuple[ResultDatabase, int]:
    """Classify backlinked identifiers missing from ``existing`` and merge the hits.

    ``classify`` returns the record for an identifier or None when the page is absent
    or not an ACS page; it may raise ``FetchError``. Classification calls run
    concurrently (bounded by whatever limiter ``classify`` uses) while this coroutine
    stays the only writer to ``existing``.

    Non-ACS identifiers are remembered as excluded so later runs skip them. Identifiers
    that failed to fetch are left alone and retried next time.

    Returns:
        The updated database and the number of records inserted
    """
    summary = summary or PhaseSummary("cross")
    candidates = reconciliation_candidates(existing, backlinks)
    if not candidates:
        logger.info("Nothing to reconcile", known=len(existing.known_identifiers()))
        return existing, 0

    logger.info("Reconciling backlinks", candidates=len(candidates))

    async def run(identifier: str) -> tuple[str, AcsRecord | None, FetchError | None]:
        try:
            return identifier, await classify(identifier), None
        except FetchError as e:
            return identifier, None, e

    delta = 0
    tasks = [asyncio.ensure_future(run(identifier)) for identifier in candidates]
    try:
        for next_done in asyncio.as_completed(tasks):
            identifier, record, error = await next_done
            if error is not None:
                summary.failed += 1
                logger.warning("Backlinked page failed", identifier=identifier, error=error.reason)
                continue

            summary.fetched += 1
            if record is None:
                summary.skipped += 1
                existing.exclude(identifier)
                continue

            summary.classified += 1
            if existing.merge(record) is MergeResult.INSERTED:
                delta += 1
    finally:
        for task in tasks:
            task.cancel()

    logger.info("Reconciliation finished", inserted=delta, **summary.as_dict())
    return existing, delta

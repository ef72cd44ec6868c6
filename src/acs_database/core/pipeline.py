# ABOUTME: Pipeline driver that sequences the getnames, backlinks, scrape and cross phases
# ABOUTME: Single writer to the result database; persists outputs after every phase, even when interrupted

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass, field
from pathlib import Path

import anyio
from rich.console import Console

from acs_database.config import get_config
from acs_database.core.identifiers import page_identifiers, scp_number_in_range, sort_key
from acs_database.core.models import AcsRecord, PhaseSummary
from acs_database.core.reconcile import reconcile
from acs_database.core.service import AcsScraperService, PageOutcome
from acs_database.extraction.backlinks import BacklinkHarvester
from acs_database.extraction.base import Classifier, FetchError
from acs_database.extraction.fetcher import BoundedFetcher, ConcurrencyLimiter
from acs_database.extraction.names import NameHarvester
from acs_database.persistence.store import ResultDatabase
from acs_database.utils.logging import PhaseProgress, get_logger, with_phase_context

PHASE_ORDER = ("getnames", "backlinks", "scrape", "cross")


@dataclass
class PipelineOptions:
    """Run options as given on the command line."""

    start: int
    end: int
    limit: int
    retries: int
    phases: frozenset[str] = field(default_factory=lambda: frozenset({"scrape"}))
    output_dir: Path = Path("output")

    def __post_init__(self):
        unknown = set(self.phases) - set(PHASE_ORDER)
        if unknown:
            raise ValueError(f"Unknown phases: {', '.join(sorted(unknown))}")
        if self.start > self.end:
            raise ValueError(f"Start ({self.start}) must not be greater than end ({self.end})")
        if self.limit < 1:
            raise ValueError("Concurrency limit must be at least 1")
        if self.retries < 0:
            raise ValueError("Retries must not be negative")

    @classmethod
    def from_config(cls, **overrides) -> "PipelineOptions":
        config = get_config()
        values = {
            "start": config.default_start,
            "end": config.default_end,
            "limit": config.default_limit,
            "retries": config.default_retries,
            "output_dir": config.output_dir,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


class AcsPipeline:
    """Runs the enabled phases in a fixed order and reports one summary per phase."""

    def __init__(
        self,
        options: PipelineOptions,
        fetcher: BoundedFetcher | None = None,
        classifier: Classifier | None = None,
        database: ResultDatabase | None = None,
        console: Console | None = None,
        show_progress: bool = True,
    ):
        self.options = options
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or BoundedFetcher(retries=options.retries)
        self.classifier = classifier
        self.database = database
        self.console = console
        self.show_progress = show_progress
        self.logger = get_logger(__name__)

    async def run(self) -> list[PhaseSummary]:
        """Run every enabled phase.

        Raises:
            PersistenceError: If the prior database cannot be loaded or an output cannot be written
        """
        if self.database is None:
            self.database = await anyio.to_thread.run_sync(ResultDatabase.load, self.options.output_dir)

        summaries: list[PhaseSummary] = []
        try:
            for phase in PHASE_ORDER:
                if phase not in self.options.phases:
                    continue
                with with_phase_context(phase, start=self.options.start, end=self.options.end) as log:
                    log.info("Phase started")
                    summary = await getattr(self, f"run_{phase}")(self.database)
                    log.info("Phase finished", **summary.as_dict())
                summaries.append(summary)
        finally:
            if self._owns_fetcher:
                await self.fetcher.close()

        return summaries

    def _limiter(self) -> ConcurrencyLimiter:
        # One limiter per phase
        return ConcurrencyLimiter(self.options.limit)

    def _progress(self, description: str, total: int | None = None) -> PhaseProgress:
        return PhaseProgress(description, total=total, console=self.console, enabled=self.show_progress)

    async def _save(self, *writers) -> None:
        for writer in writers:
            await anyio.to_thread.run_sync(writer, self.options.output_dir)

    # --- Phases ------------------------------------------------------------------------
    async def run_getnames(self, database: ResultDatabase) -> PhaseSummary:
        harvester = NameHarvester(self.fetcher, limiter=self._limiter())
        summary = PhaseSummary("getnames")

        try:
            with self._progress("Harvesting SCP names") as progress:
                async for record in harvester.harvest_names():
                    database.names[record.identifier] = record
                    summary.classified += 1
                    progress.advance()
        finally:
            summary.fetched = harvester.fetched
            summary.skipped = harvester.skipped
            summary.failed = harvester.failed
            await self._save(database.save_names)

        return summary

    async def run_backlinks(self, database: ResultDatabase) -> PhaseSummary:
        harvester = BacklinkHarvester(self.fetcher, limiter=self._limiter())
        summary = PhaseSummary("backlinks")

        with self._progress("Harvesting ACS backlinks"):
            backlinks = await harvester.harvest_backlinks()

        for key in harvester.failed_components:
            previous = database.backlinks.get(key, set())
            if previous:
                self.logger.warning(
                    "Backlink listing incomplete, keeping previous identifiers", component=key, previous=len(previous)
                )
            backlinks[key] = previous | backlinks.get(key, set())

        database.backlinks = {**database.backlinks, **backlinks}
        summary.fetched = harvester.fetched
        summary.failed = harvester.failed
        summary.classified = len(set().union(*backlinks.values())) if backlinks else 0
        summary.skipped = len(harvester.truncated)
        await self._save(database.save_backlinks)
        return summary

    def scrape_targets(self, database: ResultDatabase) -> list[tuple[str, str | None]]:
        """Pages to visit: roster entries in range when a roster exists, every number in range otherwise."""
        if database.names:
            entries = [
                entry
                for entry in database.names.values()
                if scp_number_in_range(entry.actual_number, self.options.start, self.options.end)
            ]
            entries.sort(key=lambda entry: (sort_key(entry.actual_number), entry.identifier))
            return [(entry.identifier, entry.url) for entry in entries]
        return [(identifier, None) for identifier in page_identifiers(self.options.start, self.options.end)]

    async def run_scrape(self, database: ResultDatabase) -> PhaseSummary:
        service = AcsScraperService(self.fetcher, classifier=self.classifier, names=database.names)
        limiter = self._limiter()
        targets = self.scrape_targets(database)
        summary = PhaseSummary("scrape")

        async def scrape_one(identifier: str, url: str | None) -> tuple[str, PageOutcome | None, FetchError | None]:
            try:
                return identifier, await service.classify_identifier(identifier, url, limiter=limiter), None
            except FetchError as e:
                return identifier, None, e

        tasks = [asyncio.ensure_future(scrape_one(identifier, url)) for identifier, url in targets]
        try:
            with self._progress("Scraping ACS pages", total=len(targets)) as progress:
                for next_done in asyncio.as_completed(tasks):
                    identifier, outcome, error = await next_done
                    self._record_outcome(database, summary, identifier, outcome, error)
                    progress.advance()
                    progress.update_with_data(found=summary.classified, failed=summary.failed)
        finally:
            for task in tasks:
                task.cancel()
            await self._save(database.save_records, database.save_excluded)

        return summary

    def _record_outcome(
        self,
        database: ResultDatabase,
        summary: PhaseSummary,
        identifier: str,
        outcome: PageOutcome | None,
        error: FetchError | None,
    ) -> None:
        if error is not None or outcome is None:
            summary.failed += 1
            self.logger.warning("Page skipped after retries", identifier=identifier, error=error.reason if error else None)
            return

        if outcome.absent:
            summary.skipped += 1
            return

        summary.fetched += 1
        if not outcome.found:
            summary.skipped += 1
            database.exclude(identifier)
            return

        summary.classified += 1
        database.merge(outcome.record)

    async def run_cross(self, database: ResultDatabase) -> PhaseSummary:
        summary = PhaseSummary("cross")
        if not database.backlinks:
            self.logger.warning("No backlinks to reconcile, run the backlinks phase first")
            return summary

        service = AcsScraperService(self.fetcher, classifier=self.classifier, names=database.names)
        limiter = self._limiter()

        with self._progress("Reconciling backlinks") as progress:

            def classify(identifier: str) -> Awaitable[AcsRecord | None]:
                return self._classify_backlink(service, identifier, limiter, progress)

            try:
                _, delta = await reconcile(database, database.backlinks, classify, summary)
            finally:
                await self._save(database.save_records, database.save_excluded)

        self.logger.info("Backlink reconciliation added records", delta=delta)
        return summary

    @staticmethod
    async def _classify_backlink(
        service: AcsScraperService, identifier: str, limiter: ConcurrencyLimiter, progress: PhaseProgress
    ) -> AcsRecord | None:
        try:
            outcome = await service.classify_identifier(identifier, limiter=limiter)
        finally:
            progress.advance()
        return outcome.record

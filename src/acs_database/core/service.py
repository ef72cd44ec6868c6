# ABOUTME: Page classification service: fetch one page, classify it and assemble its record
# ABOUTME: Supplies names and numbers from the series roster, page titles and fragment breadcrumbs

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from acs_database.core.identifiers import (
    TRAILING_SCP_NUMBER_RE,
    actual_number_for,
    extract_scp_number,
    format_number,
)
from acs_database.core.models import AcsRecord, Found, NameRecord
from acs_database.extraction.base import Classifier, PageContent, PageFetcher
from acs_database.extraction.classifier import AcsClassifier
from acs_database.extraction.fetcher import ConcurrencyLimiter
from acs_database.utils.logging import get_logger

FRAGMENT_PREFIX = "fragment:"
PAGE_TITLE_SELECTOR = "#page-title"
BREADCRUMB_SELECTOR = "#breadcrumbs > a:last-of-type"

# Pages discussing SCP-001 proposals are filed under that number
PROPOSAL_NUMBER = "SCP-001"


@dataclass(frozen=True, slots=True)
class PageOutcome:
    """Result of classifying one identifier. ``record`` is None for absent or non-ACS pages."""

    identifier: str
    record: AcsRecord | None = None
    absent: bool = False
    reason: str = ""

    @property
    def found(self) -> bool:
        return self.record is not None


class AcsScraperService:
    """Turns page identifiers into ACS records."""

    def __init__(
        self,
        fetcher: PageFetcher,
        classifier: Classifier | None = None,
        names: Mapping[str, NameRecord] | None = None,
    ):
        self.fetcher = fetcher
        self.classifier = classifier or AcsClassifier()
        self.names: dict[str, NameRecord] = dict(names or {})
        self._names_by_number = {n.actual_number: n for n in self.names.values() if n.actual_number}
        self.logger = get_logger(__name__)

    async def classify_identifier(
        self, identifier: str, url: str | None = None, *, limiter: ConcurrencyLimiter | None = None
    ) -> PageOutcome:
        """Fetch and classify one page.

        Raises:
            FetchError: If the page could not be fetched within the retry budget
        """
        content = await self.fetcher.fetch(identifier, url, limiter=limiter)
        if content is None:
            return PageOutcome(identifier, absent=True, reason="page does not exist")

        outcome = self.classifier.classify(content)
        if not isinstance(outcome, Found):
            return PageOutcome(identifier, reason=outcome.reason)

        record = self.build_record(identifier, content, outcome)
        self.logger.debug(
            "Page classified",
            identifier=identifier,
            layout=outcome.layout,
            method=outcome.method.value,
            contain=record.contain,
        )
        return PageOutcome(identifier, record=record)

    async def classify_record(self, identifier: str) -> AcsRecord | None:
        """Reconciliation hook: the record for an identifier, or None when it is not an ACS page."""
        outcome = await self.classify_identifier(identifier)
        return outcome.record

    def build_record(self, identifier: str, content: PageContent, found: Found) -> AcsRecord:
        fragment = identifier.startswith(FRAGMENT_PREFIX)
        roster_entry = self.names.get(identifier)

        actual_number = roster_entry.actual_number if roster_entry else actual_number_for(identifier)
        display_number = roster_entry.display_number if roster_entry else ""
        name = roster_entry.name if roster_entry else ""

        if fragment:
            actual_number, parent_name = self._fragment_parent(content)
            parent = self._names_by_number.get(actual_number)
            name = parent.name if parent else parent_name

        if not name:
            name = self._page_title(content) or identifier

        if "proposal" in name.lower() or "proposal" in content.url.lower():
            actual_number = PROPOSAL_NUMBER

        return AcsRecord(
            identifier=identifier,
            name=name,
            actual_number=actual_number,
            display_number=display_number or actual_number,
            url=content.url,
            fragment=fragment,
            scraper=found.layout,
            method=found.method,
            **found.fields.model_dump(),
        )

    @staticmethod
    def _page_title(content: PageContent) -> str:
        title = content.soup.select_one(PAGE_TITLE_SELECTOR)
        return title.get_text(" ", strip=True) if title else ""

    @staticmethod
    def _fragment_parent(content: PageContent) -> tuple[str, str]:
        """Actual number and title of the page a fragment belongs to, from its last breadcrumb."""
        crumb = content.soup.select_one(BREADCRUMB_SELECTOR)
        if crumb is None:
            return "", ""
        text = crumb.get_text(strip=True)
        number = extract_scp_number(text, TRAILING_SCP_NUMBER_RE)
        if number is None:
            return "", text
        return format_number(number), ""

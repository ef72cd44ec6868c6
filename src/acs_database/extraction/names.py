# ABOUTME: Name harvester for the SCP series index pages
# ABOUTME: Lazily yields one NameRecord per written entry, skipping listing pages that fail

import re
from collections.abc import AsyncIterator
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from acs_database.core.identifiers import SCP_NUMBER_RE, extract_scp_number, format_number, identifier_from_href
from acs_database.core.models import NameRecord
from acs_database.extraction.base import FetchError
from acs_database.extraction.fetcher import BoundedFetcher, ConcurrencyLimiter
from acs_database.utils.logging import get_logger

SERIES_PAGES: tuple[str, ...] = ("scp-series", *(f"scp-series-{n}" for n in range(2, 10)))

ENTRY_SELECTOR = "[id*='toc']:not([id='toc0']) + ul li"
NAME_SEPARATOR = " - "

_DASH_NUMBER_RE = re.compile(r"-(\d{3,4})")


class NameHarvester:
    """Collects page titles and display numbers from the series listings."""

    def __init__(self, fetcher: BoundedFetcher, limiter: ConcurrencyLimiter | None = None):
        self.fetcher = fetcher
        self.limiter = limiter
        self.fetched = 0
        self.failed = 0
        self.skipped = 0
        self.logger = get_logger(__name__)

    async def harvest_names(self, index_pages: tuple[str, ...] = SERIES_PAGES) -> AsyncIterator[NameRecord]:
        """Yield name records from every index page in order.

        A listing page that cannot be fetched, or no longer exists, is logged and
        skipped; the remaining pages are still harvested.
        """
        for page in index_pages:
            try:
                content = await self.fetcher.fetch(page, limiter=self.limiter)
            except FetchError as e:
                self.failed += 1
                self.logger.error("Series page failed", page=page, error=e.reason, attempts=e.attempts)
                continue

            if content is None:
                self.skipped += 1
                self.logger.warning("Series page not found", page=page)
                continue

            self.fetched += 1
            count = 0
            for record in self.parse_listing(content.soup):
                count += 1
                yield record
            self.logger.info("Series page harvested", page=page, entries=count)

    def parse_listing(self, soup: BeautifulSoup) -> list[NameRecord]:
        records = []
        for item in soup.select(ENTRY_SELECTOR):
            link = item.find("a")
            if not isinstance(link, Tag):
                continue
            # Red links point at pages nobody has written yet
            if "newpage" in (link.get("class") or []):
                continue

            record = self._entry_to_record(item, link)
            if record is not None:
                records.append(record)
        return records

    def _entry_to_record(self, item: Tag, link: Tag) -> NameRecord | None:
        href = str(link.get("href") or "")
        identifier = identifier_from_href(href)
        if identifier is None:
            return None

        display_number = link.get_text(strip=True)
        number = extract_scp_number(href)
        if number is None and display_number.upper().startswith("SCP-"):
            number = extract_scp_number(display_number, SCP_NUMBER_RE)
        if number is None and "-" in href:
            number = extract_scp_number(href, _DASH_NUMBER_RE)

        text = item.get_text()
        _, separator, name = text.partition(NAME_SEPARATOR)

        return NameRecord(
            identifier=identifier,
            actual_number=format_number(number) if number is not None else "",
            display_number=display_number,
            name=name.strip() if separator else "",
            url=urljoin(f"{self.fetcher.base_url}/", href),
        )

# ABOUTME: Backlink harvester for the three ACS component pages via wikidot's AJAX module connector
# ABOUTME: Follows the listing pager up to a fixed page bound and filters out non-article links

import random
import re
import string

from bs4 import BeautifulSoup

from acs_database.config import get_config
from acs_database.core.identifiers import identifier_from_href
from acs_database.extraction.base import FetchError
from acs_database.extraction.fetcher import BoundedFetcher, ConcurrencyLimiter
from acs_database.utils.logging import get_logger

BacklinkSet = dict[str, set[str]]

# Wikidot page ids of the component pages whose "what links here" listings are harvested
COMPONENT_PAGES: dict[str, str] = {
    "acs-bar": "858310940",
    "flops-header": "1058262511",
    "aim-component": "1307058244",
}

BACKLINKS_MODULE = "backlinks/BacklinksModule"
LINK_SELECTOR = "ul li a:first-of-type"

# Links to guides, author pages, themes, other components and off-site pages are not articles
EXCLUDED_LINK_RE = re.compile(
    r"http|component|guide|author|memo|acs|personnel|icons|art:|resource|theme",
    re.IGNORECASE,
)

_PAGER_NUMBER_RE = re.compile(r"(\d+)\s*\)?\s*;?\s*$")
_TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_token(rng: random.Random | None = None, length: int = 8) -> str:
    """Random wikidot_token7 value; wikidot only checks that cookie and form field agree."""
    rng = rng or random.Random()
    return "".join(rng.choices(_TOKEN_ALPHABET, k=length))


def is_excluded_link(href: str, text: str) -> bool:
    return bool(EXCLUDED_LINK_RE.search(href) or EXCLUDED_LINK_RE.search(text))


def parse_backlinks(soup: BeautifulSoup) -> list[str]:
    """Page identifiers linked from one listing body, in listing order, without duplicates."""
    identifiers: list[str] = []
    for link in soup.select(LINK_SELECTOR):
        href = str(link.get("href") or "")
        if is_excluded_link(href, link.get_text(strip=True)):
            continue
        identifier = identifier_from_href(href)
        if identifier and identifier not in identifiers:
            identifiers.append(identifier)
    return identifiers


def next_page_number(soup: BeautifulSoup, current: int) -> int | None:
    """Page number the listing's pager offers as "next", or None when it is exhausted."""
    for link in soup.select(".pager a"):
        if not link.get_text(strip=True).lower().startswith("next"):
            continue
        target = str(link.get("onclick") or link.get("href") or "")
        match = _PAGER_NUMBER_RE.search(target)
        return int(match.group(1)) if match else current + 1
    return None


class BacklinkHarvester:
    """Collects every page identifier that links to the known ACS components."""

    def __init__(
        self,
        fetcher: BoundedFetcher,
        limiter: ConcurrencyLimiter | None = None,
        max_pages: int | None = None,
        token: str | None = None,
    ):
        self.fetcher = fetcher
        self.limiter = limiter
        self.max_pages = max_pages or get_config().max_backlink_pages
        self.token = token or generate_token()
        self.fetched = 0
        self.failed = 0
        self.truncated: list[str] = []
        # Components with at least one listing page that could not be read
        self.failed_components: list[str] = []
        self.logger = get_logger(__name__)

    async def harvest_backlinks(self, component_keys: tuple[str, ...] | None = None) -> BacklinkSet:
        """Harvest the backlink listing of each component.

        A component whose listing cannot be fetched keeps whatever identifiers were
        collected before the failure; the other components are still harvested.
        """
        keys = component_keys or tuple(COMPONENT_PAGES)
        backlinks: BacklinkSet = {}

        for key in keys:
            if key not in COMPONENT_PAGES:
                raise ValueError(f"Unknown ACS component: {key}")
            backlinks[key] = await self._harvest_component(key)
            self.logger.info("Component backlinks harvested", component=key, count=len(backlinks[key]))

        return backlinks

    async def _harvest_component(self, key: str) -> set[str]:
        collected: set[str] = set()
        page = 1

        for pages_seen in range(1, self.max_pages + 1):
            soup = await self._fetch_listing(key, page)
            if soup is None:
                return collected

            unseen = set(parse_backlinks(soup)) - collected
            collected |= unseen

            following = next_page_number(soup, page)
            if following is None:
                return collected
            if not unseen:
                self.logger.warning("Backlink pager yielded nothing new, stopping", component=key, page=page)
                return collected
            if pages_seen == self.max_pages:
                break
            page = following

        self.truncated.append(key)
        self.logger.warning(
            "Backlink page bound reached, keeping partial results",
            component=key,
            max_pages=self.max_pages,
            collected=len(collected),
        )
        return collected

    async def _fetch_listing(self, key: str, page: int) -> BeautifulSoup | None:
        data = {
            "page_id": COMPONENT_PAGES[key],
            "moduleName": BACKLINKS_MODULE,
            "callbackIndex": "1",
            "wikidot_token7": self.token,
        }
        if page > 1:
            data["page"] = str(page)

        try:
            response = await self.fetcher.post_module(
                key, data, headers={"Cookie": f"wikidot_token7={self.token}"}, limiter=self.limiter
            )
        except FetchError as e:
            self.failed += 1
            self._mark_failed(key)
            self.logger.error("Backlink listing failed", component=key, page=page, error=e.reason)
            return None

        if response is None:
            self.logger.warning("Backlink listing not found", component=key, page=page)
            return None

        self.fetched += 1
        try:
            payload = response.json()
        except ValueError:
            self._mark_failed(key)
            self.logger.error("Backlink listing is not JSON", component=key, page=page)
            return None

        body = payload.get("body") if isinstance(payload, dict) else None
        if not isinstance(body, str):
            self._mark_failed(key)
            self.logger.error("Backlink listing has no HTML body", component=key, page=page)
            return None

        return BeautifulSoup(body, "html.parser")

    def _mark_failed(self, key: str) -> None:
        if key not in self.failed_components:
            self.failed_components.append(key)

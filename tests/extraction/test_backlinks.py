# ABOUTME: Tests for the component backlink harvester
# ABOUTME: Serves module-connector responses through httpx.MockTransport to drive pagination

import random
from urllib.parse import parse_qs

import httpx
import pytest
from bs4 import BeautifulSoup

from acs_database.extraction.backlinks import (
    COMPONENT_PAGES,
    BacklinkHarvester,
    generate_token,
    next_page_number,
    parse_backlinks,
)
from acs_database.extraction.fetcher import BoundedFetcher, ConcurrencyLimiter, RandomizedBackoff

BASE_URL = "https://scp-wiki.wikidot.com"

PAGER_TEMPLATE = (
    '<div class="pager"><span class="target">'
    '<a href="javascript:;" onclick="WIKIDOT.modules.BacklinksModule.listeners.loadPage(event, {page})">'
    "next &raquo;</a></span></div>"
)


def listing(identifiers: list[str], next_page: int | None = None) -> dict:
    items = "".join(f'<li><a href="/{identifier}">{identifier.upper()}</a></li>' for identifier in identifiers)
    pager = PAGER_TEMPLATE.format(page=next_page) if next_page else ""
    return {"status": "ok", "body": f"<ul>{items}</ul>{pager}"}


class ModuleConnector:
    """Records module-connector requests and answers them with a listing callback."""

    def __init__(self, respond):
        self.respond = respond
        self.requests: list[dict[str, str]] = []
        self.cookies: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
        self.requests.append(form)
        self.cookies.append(request.headers.get("cookie", ""))
        return httpx.Response(200, json=self.respond(form))


async def no_sleep(_delay: float) -> None:
    return None


def make_harvester(connector: ModuleConnector, max_pages: int = 5) -> BacklinkHarvester:
    fetcher = BoundedFetcher(
        client=httpx.AsyncClient(transport=httpx.MockTransport(connector)),
        limiter=ConcurrencyLimiter(2),
        retries=0,
        base_url=BASE_URL,
        backoff=RandomizedBackoff(seed=0),
        sleep=no_sleep,
    )
    return BacklinkHarvester(fetcher, max_pages=max_pages, token="abcd1234")


class TestParsing:
    def test_parse_backlinks_filters_non_articles(self):
        soup = BeautifulSoup(
            """
            <ul>
              <li><a href="/scp-173">SCP-173</a> (<a href="/scp-173">link</a>)</li>
              <li><a href="/component:anomaly-class-bar">Anomaly Class Bar</a></li>
              <li><a href="http://example.com/scp-1">Elsewhere</a></li>
              <li><a href="/fragment:scp-6500-1">SCP-6500</a></li>
              <li><a href="/acs-guide">Guide to the ACS</a></li>
              <li><a href="/scp-5000">Why?</a></li>
              <li><a href="/scp-173">SCP-173</a></li>
            </ul>
            """,
            "html.parser",
        )

        assert parse_backlinks(soup) == ["scp-173", "fragment:scp-6500-1", "scp-5000"]

    def test_next_page_number(self):
        soup = BeautifulSoup(PAGER_TEMPLATE.format(page=4), "html.parser")
        assert next_page_number(soup, 3) == 4
        assert next_page_number(BeautifulSoup("<ul></ul>", "html.parser"), 1) is None

    def test_generate_token(self):
        token = generate_token(random.Random(1))
        assert len(token) == 8
        assert token.isalnum()
        assert token == generate_token(random.Random(1))


class TestBacklinkHarvester:
    """Listing requests, pagination and the page bound."""

    @pytest.mark.asyncio
    async def test_single_page_listing(self):
        connector = ModuleConnector(lambda form: listing(["scp-173", "scp-5000"]))
        harvester = make_harvester(connector)

        backlinks = await harvester.harvest_backlinks(("acs-bar",))

        assert backlinks == {"acs-bar": {"scp-173", "scp-5000"}}
        assert len(connector.requests) == 1
        form = connector.requests[0]
        assert form["page_id"] == COMPONENT_PAGES["acs-bar"]
        assert form["moduleName"] == "backlinks/BacklinksModule"
        assert form["callbackIndex"] == "1"
        assert form["wikidot_token7"] == "abcd1234"
        assert "wikidot_token7=abcd1234" in connector.cookies[0]

    @pytest.mark.asyncio
    async def test_follows_pager_until_exhausted(self):
        def respond(form):
            page = int(form.get("page", "1"))
            return listing([f"scp-{page}00"], next_page=page + 1 if page < 3 else None)

        connector = ModuleConnector(respond)
        harvester = make_harvester(connector)

        backlinks = await harvester.harvest_backlinks(("flops-header",))

        assert backlinks["flops-header"] == {"scp-100", "scp-200", "scp-300"}
        assert [form.get("page") for form in connector.requests] == [None, "2", "3"]
        assert harvester.truncated == []

    @pytest.mark.asyncio
    async def test_endless_pager_stops_at_page_bound(self):
        def respond(form):
            page = int(form.get("page", "1"))
            return listing([f"scp-{page}00"], next_page=page + 1)

        connector = ModuleConnector(respond)
        harvester = make_harvester(connector, max_pages=3)

        backlinks = await harvester.harvest_backlinks(("aim-component",))

        assert len(connector.requests) == 3
        assert backlinks["aim-component"] == {"scp-100", "scp-200", "scp-300"}
        assert harvester.truncated == ["aim-component"]

    @pytest.mark.asyncio
    async def test_self_referential_pager_terminates(self):
        connector = ModuleConnector(lambda form: listing(["scp-173"], next_page=1))
        harvester = make_harvester(connector, max_pages=50)

        backlinks = await harvester.harvest_backlinks(("acs-bar",))

        assert backlinks["acs-bar"] == {"scp-173"}
        assert len(connector.requests) == 2

    @pytest.mark.asyncio
    async def test_harvests_every_component_by_default(self):
        ids_by_page_id = {"858310940": ["scp-173"], "1058262511": ["scp-049"], "1307058244": ["scp-682"]}
        connector = ModuleConnector(lambda form: listing(ids_by_page_id[form["page_id"]]))
        harvester = make_harvester(connector)

        backlinks = await harvester.harvest_backlinks()

        assert backlinks == {
            "acs-bar": {"scp-173"},
            "flops-header": {"scp-049"},
            "aim-component": {"scp-682"},
        }

    @pytest.mark.asyncio
    async def test_missing_body_keeps_other_components(self):
        def respond(form):
            if form["page_id"] == COMPONENT_PAGES["acs-bar"]:
                return {"status": "wrong_token7"}
            return listing(["scp-049"])

        connector = ModuleConnector(respond)
        harvester = make_harvester(connector)

        backlinks = await harvester.harvest_backlinks(("acs-bar", "flops-header"))

        assert backlinks == {"acs-bar": set(), "flops-header": {"scp-049"}}
        assert harvester.failed_components == ["acs-bar"]

    @pytest.mark.asyncio
    async def test_unknown_component(self):
        harvester = make_harvester(ModuleConnector(lambda form: listing([])))

        with pytest.raises(ValueError):
            await harvester.harvest_backlinks(("not-a-component",))

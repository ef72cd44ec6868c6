# ABOUTME: Shared types for the extraction layer: fetched page content, errors and protocols
# ABOUTME: Lets the pipeline depend on fetching/classifying behaviour rather than concrete classes

from dataclasses import dataclass, field
from functools import cached_property
from typing import Protocol

from bs4 import BeautifulSoup

from acs_database.core.models import ClassificationOutcome


class AcsDatabaseError(Exception):
    """Base exception for all ACS database errors."""

    pass


class TransientFetchError(AcsDatabaseError):
    """A retryable failure: timeout, connection reset, 5xx or other non-2xx response."""

    def __init__(self, reason: str, status_code: int | None = None):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class FetchError(AcsDatabaseError):
    """Raised when a request still fails after the whole retry budget."""

    def __init__(self, identifier: str, reason: str, attempts: int):
        super().__init__(f"Failed to fetch {identifier} after {attempts} attempt(s): {reason}")
        self.identifier = identifier
        self.reason = reason
        self.attempts = attempts


class PersistenceError(AcsDatabaseError):
    """Raised when an output file cannot be read or written."""

    pass


@dataclass
class PageContent:
    """Raw HTML of one page at the time it was fetched. Never persisted."""

    identifier: str
    url: str
    html: str
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)

    @cached_property
    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.html, "html.parser")

    @cached_property
    def text(self) -> str:
        # One line per text node so "Label:" and its value stay separable
        return self.soup.get_text("\n")


class PageFetcher(Protocol):
    """Anything that can turn a page identifier into page content."""

    async def fetch(
        self, identifier: str, url: str | None = None, *, retries: int | None = None, limiter=None
    ) -> PageContent | None:
        """Fetch one page.

        Returns:
            The page content, or None when the page does not exist

        Raises:
            FetchError: If the page could not be retrieved within the retry budget
        """
        ...


class Classifier(Protocol):
    """Anything that decides whether page content carries ACS classification fields."""

    def classify(self, content: PageContent) -> ClassificationOutcome: ...

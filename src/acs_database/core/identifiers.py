# ABOUTME: Page identifier generation and SCP number helpers
# ABOUTME: Maps numeric ranges to wiki slugs and orders SCP-numbered values numerically

import re
from collections.abc import Iterator
from urllib.parse import urlparse

SCP_NUMBER_RE = re.compile(r"(?i)\bscp-(\d{1,4})\b")
TRAILING_SCP_NUMBER_RE = re.compile(r"(?i)\bscp-(\d{1,4})$")
SORTABLE_NUMBER_RE = re.compile(r"(?i)^scp-(\d+)")


def format_number(number: int) -> str:
    """Format an SCP number the way the wiki titles it: 7 -> 'SCP-007', 1234 -> 'SCP-1234'."""
    if number <= 99:
        return f"SCP-{number:03d}"
    return f"SCP-{number}"


def format_identifier(number: int) -> str:
    """Page slug for an SCP number: 7 -> 'scp-007'."""
    return format_number(number).lower()


def page_identifiers(start: int, end: int) -> Iterator[str]:
    """Yield the page identifiers for every SCP number in ``[start, end]`` in order."""
    for number in range(start, end + 1):
        yield format_identifier(number)


def identifier_from_href(href: str) -> str | None:
    """Derive a page identifier from a wiki link.

    Accepts relative (``/scp-042``) and absolute links; query strings, fragments
    and wikidot's ``/norender/true`` style suffixes are dropped.
    """
    if not href:
        return None
    path = urlparse(href).path if "://" in href else href.split("#", 1)[0].split("?", 1)[0]
    slug = path.strip("/").split("/", 1)[0].strip().lower()
    return slug or None


def extract_scp_number(text: str, pattern: re.Pattern[str] = SCP_NUMBER_RE) -> int | None:
    match = pattern.search(text or "")
    return int(match.group(1)) if match else None


def actual_number_for(identifier: str) -> str:
    """Canonical SCP number for a page identifier, or '' when it names no SCP."""
    if identifier.startswith("fragment:"):
        return ""
    number = extract_scp_number(identifier, TRAILING_SCP_NUMBER_RE)
    return format_number(number) if number is not None else ""


def scp_number_in_range(actual_number: str, start: int, end: int) -> bool:
    match = SORTABLE_NUMBER_RE.match(actual_number or "")
    return bool(match) and start <= int(match.group(1)) <= end


def sort_key(value: str) -> tuple[int, int, str]:
    """Order SCP-numbered values numerically, ahead of everything else sorted as text."""
    match = SORTABLE_NUMBER_RE.match(value or "")
    if match:
        return (0, int(match.group(1)), value)
    return (1, 0, value or "")

# ABOUTME: Domain models for classification records, name roster entries and classifier outcomes
# ABOUTME: Pydantic models are persisted as JSON; outcome types are transient tagged results

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field


class DetectionMethod(str, Enum):
    """How a record's classification fields were obtained."""

    STRUCTURED = "structured"
    FALLBACK = "fallback"

    @property
    def strength(self) -> int:
        return 2 if self is DetectionMethod.STRUCTURED else 1

    def is_stronger_than(self, other: "DetectionMethod") -> bool:
        return self.strength > other.strength


class AcsFields(BaseModel):
    """The classification fields of one ACS component or text mention.

    Empty strings mean the field exists on the page but is blank (for example an
    unused ``{$secondary-class}`` placeholder).
    """

    clearance: str = ""
    clearance_text: str = ""
    contain: str = ""
    secondary: str = ""
    disrupt: str = ""
    risk: str = ""


class AcsRecord(AcsFields):
    """A classified page as stored in the ACS database."""

    identifier: str = Field(description="Wiki page slug, e.g. 'scp-042'")
    name: str = Field(default="", description="Display title of the page")
    actual_number: str = Field(default="", description="Canonical SCP number, e.g. 'SCP-042'")
    display_number: str = Field(default="", description="Number as shown on the series index")
    url: str = Field(description="Absolute URL of the classified page")
    fragment: bool = Field(default=False, description="Whether the page is a fragment of another page")
    scraper: str = Field(description="Layout that produced the fields, e.g. 'ACS Bar' or 'Text Fallback'")
    method: DetectionMethod = Field(description="Detection tier that produced the fields")


class NameRecord(BaseModel):
    """One entry of the series index roster."""

    identifier: str
    actual_number: str = ""
    display_number: str = ""
    name: str = ""
    url: str


@dataclass(frozen=True, slots=True)
class Found:
    """Classifier outcome: a complete set of fields was extracted."""

    fields: AcsFields
    method: DetectionMethod
    layout: str


@dataclass(frozen=True, slots=True)
class NotFound:
    """Classifier outcome: the page is not (provably) an ACS page."""

    reason: str = "no ACS marker or phrase found"


ClassificationOutcome = Found | NotFound


@dataclass(slots=True)
class PhaseSummary:
    """Per-phase counters reported at the end of every phase."""

    phase: str
    fetched: int = 0
    classified: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "fetched": self.fetched,
            "classified": self.classified,
            "skipped": self.skipped,
            "failed": self.failed,
        }

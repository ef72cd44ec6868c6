# ABOUTME: Two-tier ACS classifier: known component layouts first, literal text phrases as fallback
# ABOUTME: Returns an explicit Found/NotFound outcome; a layout with a missing field never yields a record

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag

from acs_database.core.models import AcsFields, ClassificationOutcome, DetectionMethod, Found, NotFound
from acs_database.extraction.base import PageContent
from acs_database.extraction.text import (
    clean_text,
    clearance_level_conversion,
    clearance_text_for,
    is_valid_containment_class,
)
from acs_database.utils.logging import get_logger

FALLBACK_LAYOUT = "Text Fallback"

AIM_CLEARANCE_CLASSES = {
    "one": "LEVEL 1",
    "two": "LEVEL 2",
    "three": "LEVEL 3",
    "four": "LEVEL 4",
    "five": "LEVEL 5",
    "six": "LEVEL 6",
}

# Esoteric classes that show up in "classified as X-class" sentences
ESOTERIC_CLASSES = (
    "thaumiel",
    "apollyon",
    "archon",
    "cernunnos",
    "hiemal",
    "tiamat",
    "ticonderoga",
    "decommissioned",
    "uncontained",
)

DISRUPTION_KEYWORDS = ("vlam", "keneq", "ekhi", "amida")


@dataclass(frozen=True)
class StructuredLayout:
    """One known ACS component and where its fields live."""

    name: str
    container: str
    required: dict[str, str]
    optional: dict[str, str] = field(default_factory=dict)
    clearance_classes: dict[str, str] | None = None
    esoteric_secondary: bool = False
    placeholder_clearance_text: str | None = None


_BAR_SELECTORS = {
    "clearance": "div.top-right-box > div.level",
    "clearance_text": "div.top-right-box > div.clearance",
    "contain": "div.contain-class > div.class-text",
    "secondary": "div.second-class > div.class-text",
    "disrupt": "div.disrupt-class > div.class-text",
    "risk": "div.risk-class > div.class-text",
}


def _pick(selectors: dict[str, str], *names: str) -> dict[str, str]:
    return {name: selectors[name] for name in names}


ACS_BAR = StructuredLayout(
    name="ACS Bar",
    container="div.anom-bar-container",
    required=_pick(_BAR_SELECTORS, "contain", "disrupt", "risk"),
    optional=_pick(_BAR_SELECTORS, "clearance", "clearance_text", "secondary"),
)

ACS_LITE_BAR = StructuredLayout(
    name="ACS Lite Bar",
    container="div.anom-lite-bar-container",
    required=_pick(_BAR_SELECTORS, "contain", "disrupt"),
    optional=_pick(_BAR_SELECTORS, "risk", "clearance", "clearance_text", "secondary"),
)

ACS_HYBRID_BAR = StructuredLayout(
    name="ACS Hybrid Bar",
    container="div.acs-hybrid-text-bar",
    required={
        "contain": "div.acs-contain > div.acs-text > span:nth-of-type(2)",
        "disrupt": "div.acs-disrupt > div.acs-text",
        "risk": "div.acs-risk > div.acs-text",
    },
    optional={
        "clearance": "div.acs-clear > strong",
        "clearance_text": "div.acs-clear > span.clearance-level-text",
        "secondary": "div.acs-secondary > div.acs-text > span:nth-of-type(2)",
    },
    placeholder_clearance_text="clearance",
)

# Table rows are matched without a tbody step so the selectors work whether or not
# the parser inserted one
FLOPS_HEADER = StructuredLayout(
    name="Flops Header",
    container=".itemInfo.darkbox",
    required={
        "contain": ".itemInfo.darkbox tr:nth-of-type(2) > td:nth-of-type(1)",
        "disrupt": ".itemInfo.darkbox + p > a.disruptionHeader",
    },
    optional={
        "clearance": ".itemInfo.darkbox tr:nth-of-type(1) > td:nth-of-type(2) > span",
        "clearance_text": ".itemInfo.darkbox tr:nth-of-type(2) > td:nth-of-type(2) > span",
    },
    esoteric_secondary=True,
)

AIM_HEADER = StructuredLayout(
    name="AIM Header",
    container="div.desktop-aim div.cell-container-image",
    required={
        "contain": "div.desktop-aim > div.w-container > div > div:nth-child(3) > p",
        "disrupt": "div.desktop-aim > div.w-container > div > div:nth-child(4) > p",
    },
    optional={
        "clearance": "div.desktop-aim > div.w-container > div > div:nth-child(2) > p > span > span",
    },
    clearance_classes=AIM_CLEARANCE_CLASSES,
    esoteric_secondary=True,
)

STRUCTURED_LAYOUTS: tuple[StructuredLayout, ...] = (ACS_BAR, ACS_LITE_BAR, ACS_HYBRID_BAR, FLOPS_HEADER, AIM_HEADER)

# Fallback phrases, matched case-insensitively against the page text
_LABEL_NAMES = r"(?:containment|secondary|disruption|risk)\s+class[ \t]*:"


def _label_pattern(label: str) -> re.Pattern[str]:
    # The value may sit on a later line (its own text node), but never past another label,
    # and it ends at the end of its line or where the next label starts
    return re.compile(
        rf"{label}\s+class[ \t]*:\s*(?!{_LABEL_NAMES})([^\n]*?)[ \t.,;]*(?={_LABEL_NAMES}|$)",
        re.IGNORECASE | re.MULTILINE,
    )


_LABEL_PATTERNS = {
    "contain": _label_pattern("containment"),
    "secondary": _label_pattern("secondary"),
    "disrupt": _label_pattern("disruption"),
    "risk": _label_pattern("risk"),
}
_CLASSIFIED_AS_RE = re.compile(r"classified\s+as\s+(?:an?\s+)?([a-z]+)\s*-\s*class\b", re.IGNORECASE)
_DISRUPTION_KEYWORD_RE = re.compile(r"(?<![\w-])(" + "|".join(DISRUPTION_KEYWORDS) + r")(?![\w-])", re.IGNORECASE)


def _is_known_class(value: str) -> bool:
    return is_valid_containment_class(value) or value.lower() in ESOTERIC_CLASSES


class AcsClassifier:
    """Decides whether a page uses the Anomaly Classification System and extracts its fields."""

    def __init__(self, layouts: tuple[StructuredLayout, ...] = STRUCTURED_LAYOUTS):
        self.layouts = layouts
        self.logger = get_logger(__name__)

    def classify(self, content: PageContent) -> ClassificationOutcome:
        """Classify page content, structured layouts first and the text fallback second."""
        outcome = self.classify_structured(content.soup)
        if isinstance(outcome, Found):
            return outcome

        fallback = self.classify_text(content.text)
        if isinstance(fallback, NotFound):
            self.logger.debug("No ACS data on page", identifier=content.identifier, reason=fallback.reason)
        return fallback

    def classify_structured(self, soup: BeautifulSoup) -> ClassificationOutcome:
        for layout in self.layouts:
            if soup.select_one(layout.container) is None:
                continue

            fields = self._extract_layout(soup, layout)
            if fields is None:
                self.logger.debug("Component found but incomplete, trying next tier", layout=layout.name)
                continue

            return Found(fields=fields, method=DetectionMethod.STRUCTURED, layout=layout.name)

        return NotFound("no complete ACS component")

    def classify_text(self, text: str) -> ClassificationOutcome:
        """Scan unstructured text for ACS phrases. A recognised containment class is required."""
        values: dict[str, str] = {}

        for field_name, pattern in _LABEL_PATTERNS.items():
            match = pattern.search(text)
            if match:
                values[field_name] = clean_text(match.group(1), split_label=False)

        contain = values.pop("contain", "")
        if not _is_known_class(contain):
            match = _CLASSIFIED_AS_RE.search(text)
            if match:
                contain = match.group(1)

        if is_valid_containment_class(contain):
            values["contain"] = contain
        elif contain.lower() in ESOTERIC_CLASSES:
            values["contain"] = "esoteric"
            if not values.get("secondary"):
                values["secondary"] = contain

        if not values.get("disrupt"):
            match = _DISRUPTION_KEYWORD_RE.search(text)
            if match:
                values["disrupt"] = match.group(1).lower()

        if not values.get("contain"):
            if any(values.values()) or contain:
                return NotFound(f"partial ACS text match without a containment class: {sorted(values)}")
            return NotFound()

        return Found(fields=AcsFields(**values), method=DetectionMethod.FALLBACK, layout=FALLBACK_LAYOUT)

    def _extract_layout(self, soup: BeautifulSoup, layout: StructuredLayout) -> AcsFields | None:
        values: dict[str, str] = {}

        for field_name, selector in layout.required.items():
            element = soup.select_one(selector)
            if element is None:
                return None
            values[field_name] = self._element_value(field_name, element, layout)

        for field_name, selector in layout.optional.items():
            element = soup.select_one(selector)
            values[field_name] = self._element_value(field_name, element, layout) if element is not None else ""

        contain = values.get("contain", "")
        if layout.esoteric_secondary and contain and not is_valid_containment_class(contain):
            values["secondary"] = contain
            values["contain"] = "esoteric"

        clearance_text = values.get("clearance_text", "")
        if layout.placeholder_clearance_text and clearance_text.lower() == layout.placeholder_clearance_text:
            clearance_text = ""
        values["clearance_text"] = clearance_text or clearance_text_for(values.get("clearance", ""))

        return AcsFields(**values)

    @staticmethod
    def _element_value(field_name: str, element: Tag, layout: StructuredLayout) -> str:
        if field_name == "clearance":
            if layout.clearance_classes is not None:
                classes = element.get("class") or []
                return next((layout.clearance_classes[c] for c in classes if c in layout.clearance_classes), "")
            raw = element.get_text(" ", strip=True)
            converted = clearance_level_conversion(raw)
            return converted if converted != raw else clean_text(raw)

        return clean_text(element.get_text(" ", strip=True))

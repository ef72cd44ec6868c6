# ABOUTME: Text normalization helpers shared by both classifier tiers
# ABOUTME: Cleans template placeholders, "label: value" strings and clearance level spellings

import re

CONTAINMENT_CLASSES = ("safe", "euclid", "keter", "neutralized", "pending", "explained", "esoteric")

CLEARANCE_TEXTS = {
    "LEVEL 1": "Unrestricted",
    "LEVEL 2": "Restricted",
    "LEVEL 3": "Confidential",
    "LEVEL 4": "Secret",
    "LEVEL 5": "Top Secret",
    "LEVEL 6": "Cosmic Top Secret",
}

_DIGIT_RE = re.compile(r"\d")
_WHITESPACE_RE = re.compile(r"\s+")


def is_valid_containment_class(value: str) -> bool:
    return value.strip().lower() in CONTAINMENT_CLASSES


def clearance_level_conversion(text: str) -> str:
    """Normalize the many clearance spellings to 'LEVEL n'.

    The first digit wins: 'CLASS 5/PL-046' -> 'LEVEL 5'. Text without a digit is
    returned unchanged.
    """
    match = _DIGIT_RE.search(text)
    if match:
        return f"LEVEL {match.group(0)}"
    return text


def clearance_text_for(clearance: str) -> str:
    return CLEARANCE_TEXTS.get(clearance, "")


def extract_string_after_colon(text: str) -> str:
    """Return what follows the first colon, up to the end of that line."""
    if ":" not in text:
        return ""
    rest = text.split(":", 1)[1]
    return rest.split("\n", 1)[0].lstrip()


def clean_text(text: str, split_label: bool = True) -> str:
    """Normalize one extracted field value.

    - unfilled template placeholders (``{$secondary-class}``) and 'none' become ''
    - 'Containment Class: Keter' becomes 'Keter' unless ``split_label`` is false
    - 'n/Value' prefixes such as '2/Vlam' are dropped, except for 'N/A'
    """
    text = _WHITESPACE_RE.sub(" ", text).strip()
    if "{$" in text or text.lower() == "none":
        return ""
    if split_label and ":" in text:
        return extract_string_after_colon(text).strip()
    if "/" in text and "n/a" not in text.lower():
        return text.split("/", 1)[1].strip()
    return text

"""Fixed-pattern extraction of phone numbers, amounts and tenures from free text."""

from __future__ import annotations

import re
from typing import Optional

_PHONE = re.compile(r"(?<![\d+])(?:\+?91[\s-]?)?(\d{5})[\s-]?(\d{5})(?!\d)")

_AMOUNT = re.compile(
    r"(?P<currency>₹|rs\.?|inr)?\s*"
    r"(?P<number>\d[\d,]*(?:\.\d+)?)\s*"
    r"(?P<unit>lakhs?|lacs?|crores?|cr|k|thousand)?(?![a-z])"
    r"(?P<suffix>\s*(?:months?|mos?|years?|yrs?|%|percent|p\.a))?",
    re.IGNORECASE,
)

_UNITS = {
    "lakh": 100_000,
    "lakhs": 100_000,
    "lac": 100_000,
    "lacs": 100_000,
    "crore": 10_000_000,
    "crores": 10_000_000,
    "cr": 10_000_000,
    "k": 1_000,
    "thousand": 1_000,
}

_TENURE_MONTHS = re.compile(r"(\d+)\s*(?:months?|mos?)(?![a-z])", re.IGNORECASE)
_TENURE_YEARS = re.compile(r"(\d+(?:\.\d+)?)\s*(?:years?|yrs?)(?![a-z])", re.IGNORECASE)


def extract_phone(text: str) -> Optional[str]:
    """Return the first 10-digit mobile number, without country code."""
    match = _PHONE.search(text)
    if not match:
        return None
    return match.group(1) + match.group(2)


def extract_amount(text: str, allow_bare: bool = False, bare_minimum: int = 0) -> Optional[int]:
    """Return the first rupee amount in ``text``.

    An amount qualifies when it carries a currency marker or a unit token
    ("lakh", "k", ...).  With ``allow_bare`` a plain number also counts if it
    is at least ``bare_minimum``.  Numbers followed by a tenure or percentage
    suffix are never amounts.
    """
    bare: Optional[int] = None

    for match in _AMOUNT.finditer(text):
        if match.group("suffix"):
            continue
        digits = match.group("number").replace(",", "")
        if not digits or digits == ".":
            continue
        try:
            number = float(digits)
        except ValueError:
            continue

        unit = (match.group("unit") or "").lower()
        value = int(round(number * _UNITS.get(unit, 1)))

        if match.group("currency") or unit:
            if value > 0:
                return value
        elif allow_bare and bare is None and value >= bare_minimum and value > 0:
            bare = value

    return bare


def mentions_amount(text: str) -> bool:
    """True when the text carries a currency- or unit-qualified amount."""
    return extract_amount(text) is not None


def extract_tenure(text: str) -> Optional[int]:
    """Return a tenure in months from "48 months" or "4 years"."""
    match = _TENURE_MONTHS.search(text)
    if match:
        return int(match.group(1))
    match = _TENURE_YEARS.search(text)
    if match:
        return int(round(float(match.group(1)) * 12))
    return None

"""Text normalisation for scraped listing and pools values.

Every function here is pure and returns None (or an empty string for track
names) when the text carries no usable value. Callers treat that as "absent",
never as an error.
"""

import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

logger = logging.getLogger(__name__)

# Non-runner markers used in the odds and pools columns
NON_RUNNER_MARKERS = frozenset({"SCR", "NR"})

_VENDOR_PREFIX = re.compile(r"^ExpertE")
_RACE_MARKER = re.compile(r"Race\s+\d+")
_RACE_NUMBER = re.compile(r"\bRace\s+(\d+)\b")

# Applied in order: the purse block usually precedes the age/sex conditions,
# so removing it first leaves the age pattern anchored on clean text.
_TRAILING_NOISE = (
    re.compile(r"\$\d[\d,.]*[kKmM]?(?:\s.*)?$"),
    re.compile(r"Purse:.*$"),
    re.compile(r"\d+\s*yo.*$", re.IGNORECASE),
)

_FRACTIONAL_ODDS = re.compile(r"^(\d+(?:\.\d+)?)\s*/\s*(\d+(?:\.\d+)?)$")
_PLAIN_ODDS = re.compile(r"^\d+(?:\.\d+)?$")
_AMOUNT = re.compile(r"^(?:\d+(?:\.\d+)?|\.\d+)$")
_AMOUNT_NOISE = re.compile(r"[$£€,\s]")
_LEADING_INT = re.compile(r"^\s*(\d+)")
_CENTS = Decimal("0.01")


def _collapse(text: str) -> str:
    return " ".join(text.split())


def clean_track_name(raw: Optional[str]) -> str:
    """Reduce a listing's track cell to the bare track name.

    "ExpertEChurchill DownsRace 3" -> "Churchill Downs". Returns "" when
    nothing usable remains.
    """
    if not raw:
        return ""
    name = _VENDOR_PREFIX.sub("", raw.strip())
    name = _RACE_MARKER.split(name, maxsplit=1)[0].strip()
    for pattern in _TRAILING_NOISE:
        if pattern.search(name):
            name = pattern.sub("", name).strip()
    return _collapse(name)


def parse_race_number(text: Optional[str]) -> Optional[int]:
    """Parse "Race 12" -> 12. Case-sensitive; None when there is no marker."""
    if not text:
        return None
    m = _RACE_NUMBER.search(text)
    if not m:
        return None
    try:
        return int(m.group(1))
    except ValueError:
        return None


def _to_cents(value: float) -> float:
    # Exact binary value, halves rounded up: 1/8 -> 1.13
    return float(Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP))


def _is_non_runner(text: Optional[str]) -> bool:
    return text is None or not text.strip() or text.strip().upper() in NON_RUNNER_MARKERS


def odds_to_decimal(text: Optional[str]) -> Optional[float]:
    """Convert fractional odds text to decimal odds (total return per unit).

    "1/9" -> 1.11, "15" (fifteen to one) -> 16.0. Scratched, not-running,
    empty or unrecognised values give None.
    """
    if _is_non_runner(text):
        return None
    value = text.strip()

    m = _FRACTIONAL_ODDS.match(value)
    if m:
        numerator, denominator = float(m.group(1)), float(m.group(2))
        if denominator == 0:
            logger.debug(f"Odds with zero denominator: {text!r}")
            return None
        return _to_cents(numerator / denominator + 1)

    if _PLAIN_ODDS.match(value):
        return _to_cents(float(value) + 1)

    logger.debug(f"Unparsable odds: {text!r}")
    return None


def clean_amount(text: Optional[str]) -> Optional[float]:
    """Parse a pool amount such as "$13,686" -> 13686.0."""
    if _is_non_runner(text):
        return None
    cleaned = _AMOUNT_NOISE.sub("", text)
    if not _AMOUNT.match(cleaned):
        logger.debug(f"Unparsable amount: {text!r}")
        return None
    return float(cleaned)


def parse_leading_int(text: Optional[str]) -> Optional[int]:
    """Leading integer of a cell ("7" -> 7, "5 MTP" -> 5, "SCR" -> None)."""
    if not text:
        return None
    m = _LEADING_INT.match(text)
    return int(m.group(1)) if m else None


def parse_minutes_to_post(text: Optional[str]) -> Optional[int]:
    """Minutes-to-post badge value, or None when the badge shows no number."""
    minutes = parse_leading_int(text)
    if minutes is None and text:
        logger.debug(f"Unparsable MTP badge: {text!r}")
    return minutes

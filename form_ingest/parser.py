# form_ingest/parser.py
# Raw form field -> number, the way a browser number parse reads it:
#   - probability: leading decimal prefix ("45%" -> 45.0, "12abc" -> 12.0)
#   - age: leading integer prefix ("70.9" -> 70)
# Nothing here raises; failures come back as (None, reason).
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger("dementia_risk")

_DECIMAL_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_INTEGER_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_INFINITY_PREFIX = re.compile(r"^\s*[+-]?Infinity")

PROBABILITY_RANGE = (0.0, 100.0)
AGE_RANGE = (0, 120)

_WARNINGS = {
    "empty": "{label} is empty",
    "not_numeric": "{label} is not a number",
    "not_finite": "{label} must be a finite number",
    "trailing_text_ignored": "{label}: trailing text ignored",
    "fraction_truncated": "{label}: fractional part dropped",
    "out_of_range": "{label} is outside the usual range — please verify",
}


def _warning(reason: Optional[str], label: str) -> Optional[str]:
    if reason is None:
        return None
    return _WARNINGS[reason].format(label=label)


def _norm(s: Any) -> str:
    return ("" if s is None else str(s)).strip()


def _from_number(x: Any) -> Tuple[Optional[float], Optional[str]]:
    # bool is an int subclass; a checkbox value is not a number here
    if isinstance(x, bool):
        return None, "not_numeric"
    try:
        v = float(x)
    except OverflowError:
        # ints past the float range
        return None, "not_finite"
    if not math.isfinite(v):
        return None, "not_finite"
    return v, None


def _in_range(v: float, bounds: Tuple[float, float]) -> bool:
    lo, hi = bounds
    return lo <= v <= hi


# ----------------------------
# Probability (%)
# ----------------------------
def parse_percent_with_reason(raw: Any) -> Tuple[Optional[float], Optional[str]]:
    """
    Returns (value, reason). reason is None for a clean parse, otherwise one of
    empty / not_numeric / not_finite / trailing_text_ignored / out_of_range.
    A value is returned alongside the last two.
    """
    if isinstance(raw, (int, float)):
        v, reason = _from_number(raw)
        if v is None:
            return None, reason
        return v, (None if _in_range(v, PROBABILITY_RANGE) else "out_of_range")

    t = _norm(raw)
    if not t:
        return None, "empty"
    if _INFINITY_PREFIX.match(t):
        return None, "not_finite"

    m = _DECIMAL_PREFIX.match(t)
    if not m:
        return None, "not_numeric"
    v = float(m.group(1))
    if not math.isfinite(v):
        # "1e999" overflows to inf
        return None, "not_finite"

    if not _in_range(v, PROBABILITY_RANGE):
        return v, "out_of_range"
    rest = t[m.end():].strip()
    if rest and rest != "%":
        return v, "trailing_text_ignored"
    return v, None


def parse_percent(raw: Any) -> Tuple[Optional[float], Optional[str]]:
    v, reason = parse_percent_with_reason(raw)
    return v, _warning(reason, "Probability")


# ----------------------------
# Age (years)
# ----------------------------
def parse_age_with_reason(raw: Any) -> Tuple[Optional[int], Optional[str]]:
    if isinstance(raw, (int, float)):
        v, reason = _from_number(raw)
        if v is None:
            return None, reason
        age = int(v)
        if not _in_range(age, AGE_RANGE):
            return age, "out_of_range"
        return age, (None if age == v else "fraction_truncated")

    t = _norm(raw)
    if not t:
        return None, "empty"
    m = _INTEGER_PREFIX.match(t)
    if not m:
        return None, "not_numeric"
    try:
        age = int(m.group(1))
    except ValueError:
        # digit strings past the int conversion limit
        return None, "not_finite"

    if not _in_range(age, AGE_RANGE):
        return age, "out_of_range"
    rest = t[m.end():].strip()
    if re.match(r"^\.\d*$", rest):
        return age, "fraction_truncated"
    if rest:
        return age, "trailing_text_ignored"
    return age, None


def parse_age(raw: Any) -> Tuple[Optional[int], Optional[str]]:
    v, reason = parse_age_with_reason(raw)
    return v, _warning(reason, "Age")


# ----------------------------
# Whole form
# ----------------------------
@dataclass
class ParseReport:
    extracted: Dict[str, Any]
    warnings: List[str] = field(default_factory=list)


def parse_form_fields(probability: Any, age: Any) -> ParseReport:
    """
    Parse both numeric fields of the calculator form.

    extracted holds {"probability": float | None, "age": int | None}; a None
    value means the field could not be read as a finite number.
    """
    extracted: Dict[str, Any] = {}
    warnings: List[str] = []

    p, p_warn = parse_percent(probability)
    a, a_warn = parse_age(age)
    extracted["probability"] = p
    extracted["age"] = a
    for w in (p_warn, a_warn):
        if w:
            warnings.append(w)

    if warnings:
        logger.debug("form parse warnings: %s", warnings)
    return ParseReport(extracted=extracted, warnings=warnings)

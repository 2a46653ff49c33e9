# dementia_engine.py
# Dementia diagnostic-test recommender — pure evaluation core
#
# Steps (in order):
# - Parse clinician probability (%) and patient age
# - Require a selected test and look it up in the fixed catalog
# - Age-band baseline risk; adjusted pre-test = max(clinician, baseline)
# - Below the test threshold: not recommended, no post-test math
# - Otherwise Bayesian update with LR+ / LR− and the probability gap
# - Recommend iff the gap exceeds 30 percentage points
#
# Known edge case (left as-is):
# - A pre-test probability of exactly 100% has undefined odds. The post-test
#   probabilities come back NaN, the gap is NaN and the test is not recommended.

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from form_ingest.parser import parse_age, parse_percent

logger = logging.getLogger("dementia_risk")


VERSION = {
    "engine": "v1.0",
    "baseline": "Age-band baseline risk (simplified, not clinically validated)",
    "decision": "Recommend iff |P(+) − P(−)| > 30 percentage points",
}

RECOMMENDATION_GAP_PERCENT = 30.0

# (upper age, inclusive) -> baseline %
BASELINE_RISK_BANDS: Tuple[Tuple[int, float], ...] = (
    (59, 3.0),
    (65, 10.0),
    (70, 15.0),
    (75, 25.0),
    (80, 35.0),
    (85, 50.0),
)
BASELINE_RISK_OVER_85 = 65.0

RECOMMENDED_TAG = "[RECOMMENDED]"
NOT_RECOMMENDED_TAG = "[NOT RECOMMENDED]"


# ----------------------------
# Test catalog
# ----------------------------
@dataclass(frozen=True)
class TestProfile:
    name: str
    positive_lr: float
    negative_lr: float
    threshold_percent: float

    # keep pytest from collecting this as a test class
    __test__ = False


_CATALOG_ROWS = (
    TestProfile("Neurofilament Light (NfL)", 2.5, 0.5, 20),
    TestProfile("Glial Fibrillary Acidic Protein (GFAP)", 5, 0.1, 15),
    TestProfile("Phosphorylated Tau 217 (pTau 217)", 9.3, 0.46, 10),
    TestProfile("Amyloid PET Scan", 12, 0.2, 5),
)

TEST_CATALOG: Mapping[str, TestProfile] = MappingProxyType({t.name: t for t in _CATALOG_ROWS})


def catalog_names() -> List[str]:
    return [t.name for t in _CATALOG_ROWS]


# ----------------------------
# Input / outcome types
# ----------------------------
@dataclass(frozen=True)
class AssessmentInput:
    """Raw values as collected; numbers or text."""
    clinician_probability: Any
    patient_age: Any
    selected_test: Optional[str]


class ErrorKind(Enum):
    INVALID_NUMERIC_INPUT = "InvalidNumericInput"
    NO_TEST_SELECTED = "NoTestSelected"
    TEST_NOT_FOUND = "TestNotFound"


ERROR_MESSAGES = {
    ErrorKind.INVALID_NUMERIC_INPUT: "Please enter valid numbers for both fields.",
    ErrorKind.NO_TEST_SELECTED: "Please select a dementia test to proceed.",
    ErrorKind.TEST_NOT_FOUND: "Error: Selected test not found.",
}


@dataclass(frozen=True)
class AssessmentError:
    kind: ErrorKind
    message: str

    @classmethod
    def of(cls, kind: ErrorKind) -> "AssessmentError":
        return cls(kind=kind, message=ERROR_MESSAGES[kind])


@dataclass(frozen=True)
class AssessmentResult:
    recommended: bool
    selected_test: TestProfile
    clinician_probability_percent: float
    patient_age: int
    baseline_risk_percent: float
    adjusted_pre_test_probability_percent: float
    below_threshold: bool
    post_test_probability_if_positive_percent: Optional[float] = None
    post_test_probability_if_negative_percent: Optional[float] = None
    probability_gap_percent: Optional[float] = None
    trace: Tuple[Dict[str, Any], ...] = field(default=(), compare=False)

    @property
    def tag(self) -> str:
        return RECOMMENDED_TAG if self.recommended else NOT_RECOMMENDED_TAG

    @property
    def headline(self) -> str:
        return f"{self.tag} {self.selected_test.name}"

    @property
    def recommendation_text(self) -> str:
        if self.recommended:
            return "This test is recommended for diagnosis."
        return "This test is not strongly recommended."


Outcome = Union[AssessmentResult, AssessmentError]


# ----------------------------
# Formatting helpers
# ----------------------------
def fmt_1dp(x):
    try:
        return f"{float(x):.1f}"
    except Exception:
        return str(x)

def fmt_pct(x) -> str:
    return f"{fmt_1dp(x)}%"

def fmt_num(x) -> str:
    # 20.0 -> "20", 9.3 -> "9.3"
    try:
        return f"{float(x):g}"
    except Exception:
        return str(x)


# ----------------------------
# Trace helper (auditable rules)
# ----------------------------
def add_trace(trace: List[Dict[str, Any]], rule: str, value: Any = None, effect: str = "") -> None:
    trace.append({"rule": rule, "value": value, "effect": effect})


# ----------------------------
# Core math
# ----------------------------
def baseline_risk(age: int) -> float:
    """Baseline dementia risk (%) for an age; bands are inclusive on the upper bound."""
    for upper, pct in BASELINE_RISK_BANDS:
        if age <= upper:
            return pct
    return BASELINE_RISK_OVER_85


def post_test_probability(pre_test_prob: float, likelihood_ratio: float) -> float:
    """
    Bayesian update through odds. pre_test_prob is a decimal in (0, 1).

    At pre_test_prob == 1 the odds are undefined and NaN is returned.
    """
    if pre_test_prob == 1:
        logger.warning("pre-test probability is 100%; odds undefined, post-test probability is NaN")
        return math.nan
    pre_odds = pre_test_prob / (1 - pre_test_prob)
    post_odds = pre_odds * likelihood_ratio
    if post_odds == -1:
        # only reachable for probabilities above 100%
        return math.nan
    return post_odds / (1 + post_odds)


def recommendation_for_gap(gap_percent: float) -> bool:
    return gap_percent > RECOMMENDATION_GAP_PERCENT


# ----------------------------
# Public API
# ----------------------------
def evaluate(inp: AssessmentInput) -> Outcome:
    trace: List[Dict[str, Any]] = []
    add_trace(trace, "Engine_start", VERSION["engine"], "Begin evaluation")

    prob, _ = parse_percent(inp.clinician_probability)
    age, _ = parse_age(inp.patient_age)
    if prob is None or age is None:
        logger.debug("invalid numeric input: probability=%r age=%r", inp.clinician_probability, inp.patient_age)
        return AssessmentError.of(ErrorKind.INVALID_NUMERIC_INPUT)

    name = inp.selected_test
    if not name:
        return AssessmentError.of(ErrorKind.NO_TEST_SELECTED)

    test = TEST_CATALOG.get(name) if isinstance(name, str) else None
    if test is None:
        logger.debug("test not in catalog: %r", name)
        return AssessmentError.of(ErrorKind.TEST_NOT_FOUND)

    if age < 0:
        logger.warning("negative patient age %s accepted; falls in the <60 baseline band", age)

    base = baseline_risk(age)
    add_trace(trace, "Baseline_risk", base, f"Age {age} band")

    adjusted = max(prob, base)
    add_trace(
        trace,
        "Adjusted_pre_test",
        adjusted,
        "Baseline floor applied" if adjusted > prob else "Clinician estimate kept",
    )

    common = dict(
        selected_test=test,
        clinician_probability_percent=prob,
        patient_age=age,
        baseline_risk_percent=base,
        adjusted_pre_test_probability_percent=adjusted,
    )

    if adjusted < test.threshold_percent:
        add_trace(trace, "Below_threshold", test.threshold_percent, "Not recommended; post-test math skipped")
        add_trace(trace, "Engine_end", VERSION["engine"], "Evaluation complete")
        return AssessmentResult(recommended=False, below_threshold=True, trace=tuple(trace), **common)

    pre = adjusted / 100
    positive = post_test_probability(pre, test.positive_lr) * 100
    negative = post_test_probability(pre, test.negative_lr) * 100
    gap = abs(positive - negative)
    recommended = recommendation_for_gap(gap)

    add_trace(trace, "Post_test_positive", positive, f"LR+ {fmt_num(test.positive_lr)}")
    add_trace(trace, "Post_test_negative", negative, f"LR− {fmt_num(test.negative_lr)}")
    add_trace(
        trace,
        "Probability_gap",
        gap,
        f"{'>' if recommended else '≤'} {fmt_num(RECOMMENDATION_GAP_PERCENT)} points → "
        f"{RECOMMENDED_TAG if recommended else NOT_RECOMMENDED_TAG}",
    )
    add_trace(trace, "Engine_end", VERSION["engine"], "Evaluation complete")

    return AssessmentResult(
        recommended=recommended,
        below_threshold=False,
        post_test_probability_if_positive_percent=positive,
        post_test_probability_if_negative_percent=negative,
        probability_gap_percent=gap,
        trace=tuple(trace),
        **common,
    )


def render_quick_text(res: AssessmentResult) -> str:
    t = res.selected_test
    lines = []
    lines.append(f"Patient Age: {res.patient_age}")
    lines.append(f"Baseline Risk: {fmt_pct(res.baseline_risk_percent)}")
    lines.append(f"Doctor's Estimated Probability: {fmt_pct(res.clinician_probability_percent)}")
    lines.append(f"Adjusted Pre-Test Probability: {fmt_pct(res.adjusted_pre_test_probability_percent)}")
    lines.append("")
    lines.append(f"Selected Test: {t.name}")
    lines.append(f"Test Threshold: {fmt_num(t.threshold_percent)}%")

    if res.below_threshold:
        lines.append(
            f"Pre-test probability ({fmt_pct(res.adjusted_pre_test_probability_percent)}) "
            f"is below the threshold of {fmt_num(t.threshold_percent)}%"
        )
        return "\n".join(lines)

    lines.append(f"Likelihood Ratios: LR+ = {fmt_num(t.positive_lr)}, LR− = {fmt_num(t.negative_lr)}")
    lines.append("")
    lines.append("Post-Test Probabilities:")
    lines.append(f"- If Positive: {fmt_pct(res.post_test_probability_if_positive_percent)}")
    lines.append(f"- If Negative: {fmt_pct(res.post_test_probability_if_negative_percent)}")
    lines.append(f"- Probability Gap: {fmt_pct(res.probability_gap_percent)}")
    return "\n".join(lines)

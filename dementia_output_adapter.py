# dementia_output_adapter.py
# Output adapter: converts an engine outcome into a camelCase JSON-ready contract.

import math
from typing import Any, Dict, List, Optional

from dementia_engine import (
    VERSION,
    AssessmentError,
    AssessmentInput,
    AssessmentResult,
    Outcome,
    RECOMMENDATION_GAP_PERCENT,
    evaluate,
    fmt_num,
    render_quick_text,
)
from form_ingest.parser import parse_form_fields

SYSTEM = "Dementia Test Recommender"


def _fmt_pct(x: Optional[float]) -> Optional[str]:
    if x is None:
        return None
    try:
        return f"{float(x):.1f}%"
    except (TypeError, ValueError):
        return None

def _trigger(code: str, label: str, value: Optional[str]=None, detail: Optional[str]=None, severity: str="moderate") -> Dict[str, Any]:
    out = {"code": code, "label": label, "severity": severity}
    if value is not None: out["value"] = value
    if detail is not None: out["detail"] = detail
    return out


def build_triggers(res: AssessmentResult) -> List[Dict[str, Any]]:
    t = res.selected_test
    triggers: List[Dict[str, Any]] = []

    if res.baseline_risk_percent > res.clinician_probability_percent:
        triggers.append(_trigger(
            "BASELINE_FLOOR", "Age baseline exceeds clinician estimate",
            _fmt_pct(res.baseline_risk_percent), f"Age {res.patient_age} band used as pre-test floor.", "low"))

    if res.below_threshold:
        triggers.append(_trigger(
            "BELOW_THRESHOLD", "Pre-test probability below test threshold",
            _fmt_pct(res.adjusted_pre_test_probability_percent),
            f"Threshold for {t.name} is {fmt_num(t.threshold_percent)}%.", "moderate"))
        return triggers

    gap = res.probability_gap_percent
    if gap is None or math.isnan(gap):
        triggers.append(_trigger(
            "ODDS_UNDEFINED", "Post-test probabilities undefined",
            _fmt_pct(res.adjusted_pre_test_probability_percent),
            "Pre-test odds cannot be formed at this probability.", "high"))
    elif res.recommended:
        triggers.append(_trigger(
            "GAP_WIDE", "Result would change the diagnostic picture", _fmt_pct(gap),
            f"Gap exceeds {fmt_num(RECOMMENDATION_GAP_PERCENT)} points.", "high"))
    else:
        triggers.append(_trigger(
            "GAP_NARROW", "Result unlikely to change management", _fmt_pct(gap),
            f"Gap does not exceed {fmt_num(RECOMMENDATION_GAP_PERCENT)} points.", "moderate"))

    return triggers


def generateDementiaTestOutput(inputData: dict, outcome: Outcome) -> dict:
    """
    CamelCase contract for one evaluation.
    Errors come back with status "error" and the verbatim user-facing message.
    """
    if isinstance(outcome, AssessmentError):
        return {
            "system": SYSTEM,
            "version": VERSION,
            "status": "error",
            "error": {"kind": outcome.kind.value, "message": outcome.message},
            "input": dict(inputData or {}),
        }

    res = outcome
    t = res.selected_test
    details = render_quick_text(res)
    triggers = build_triggers(res)

    markdown = (
        f"{res.headline}\n"
        f"{res.recommendation_text}\n\n"
        "Triggers:\n" +
        "\n".join([f"- {x['label']}{': '+x['value'] if x.get('value') else ''}" for x in triggers]) +
        "\n\nDetails:\n" + details
    )

    return {
        "system": SYSTEM,
        "version": VERSION,
        "status": "ok",
        "input": dict(inputData or {}),
        "recommendation": {
            "recommended": res.recommended,
            "tag": res.tag,
            "headline": res.headline,
            "text": res.recommendation_text,
        },
        "selectedTest": {
            "name": t.name,
            "positiveLR": t.positive_lr,
            "negativeLR": t.negative_lr,
            "thresholdPercent": t.threshold_percent,
        },
        "belowThreshold": res.below_threshold,
        "figures": {
            "patientAge": res.patient_age,
            "clinicianProbabilityPercent": res.clinician_probability_percent,
            "baselineRiskPercent": res.baseline_risk_percent,
            "adjustedPreTestProbabilityPercent": res.adjusted_pre_test_probability_percent,
            "postTestProbabilityIfPositivePercent": res.post_test_probability_if_positive_percent,
            "postTestProbabilityIfNegativePercent": res.post_test_probability_if_negative_percent,
            "probabilityGapPercent": res.probability_gap_percent,
        },
        "display": {
            "baselineRisk": _fmt_pct(res.baseline_risk_percent),
            "clinicianProbability": _fmt_pct(res.clinician_probability_percent),
            "adjustedPreTestProbability": _fmt_pct(res.adjusted_pre_test_probability_percent),
            "postTestIfPositive": _fmt_pct(res.post_test_probability_if_positive_percent),
            "postTestIfNegative": _fmt_pct(res.post_test_probability_if_negative_percent),
            "probabilityGap": _fmt_pct(res.probability_gap_percent),
        },
        "triggers": triggers,
        "details": details,
        "markdown": markdown,
        "trace": list(res.trace),
    }


def evaluate_unified(probability: Any, age: Any, test_name: Optional[str]) -> dict:
    """Parse raw form values, evaluate, and adapt. Parser warnings ride along."""
    # evaluate() is the authority on validity; the report only supplies warnings
    report = parse_form_fields(probability, age)
    outcome = evaluate(AssessmentInput(probability, age, test_name))
    out = generateDementiaTestOutput(
        {"probability": probability, "age": age, "test": test_name},
        outcome,
    )
    out["parseWarnings"] = list(report.warnings)
    return out

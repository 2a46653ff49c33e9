import dataclasses
import math
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dementia_engine import (
    RECOMMENDATION_GAP_PERCENT,
    TEST_CATALOG,
    AssessmentError,
    AssessmentInput,
    AssessmentResult,
    ErrorKind,
    baseline_risk,
    catalog_names,
    evaluate,
    post_test_probability,
    render_quick_text,
)

NFL = "Neurofilament Light (NfL)"
GFAP = "Glial Fibrillary Acidic Protein (GFAP)"
PTAU = "Phosphorylated Tau 217 (pTau 217)"
PET = "Amyloid PET Scan"


def _ok(prob, age, test) -> AssessmentResult:
    out = evaluate(AssessmentInput(prob, age, test))
    assert isinstance(out, AssessmentResult), out
    return out


def test_catalog_ships_four_exact_profiles_in_order():
    assert catalog_names() == [NFL, GFAP, PTAU, PET]
    rows = {n: (t.positive_lr, t.negative_lr, t.threshold_percent) for n, t in TEST_CATALOG.items()}
    assert rows == {
        NFL: (2.5, 0.5, 20),
        GFAP: (5, 0.1, 15),
        PTAU: (9.3, 0.46, 10),
        PET: (12, 0.2, 5),
    }


def test_catalog_is_read_only():
    with pytest.raises(TypeError):
        TEST_CATALOG["New test"] = TEST_CATALOG[NFL]
    with pytest.raises(dataclasses.FrozenInstanceError):
        TEST_CATALOG[NFL].threshold_percent = 0


@pytest.mark.parametrize(
    "age, expected",
    [
        (-5, 3), (0, 3), (59, 3),
        (60, 10), (65, 10),
        (66, 15), (70, 15),
        (71, 25), (75, 25),
        (76, 35), (80, 35),
        (81, 50), (85, 50),
        (86, 65), (120, 65),
    ],
)
def test_baseline_risk_band_edges(age, expected):
    assert baseline_risk(age) == expected


def test_baseline_risk_monotone_non_decreasing():
    for a in range(-10, 130):
        assert baseline_risk(a) <= baseline_risk(a + 1)


def test_post_test_probability_even_odds():
    assert post_test_probability(0.5, 1) == pytest.approx(0.5)
    assert post_test_probability(0.5, 9.3) == pytest.approx(9.3 / 10.3)
    assert post_test_probability(0.5, 0.46) == pytest.approx(0.46 / 1.46)
    assert post_test_probability(0.0, 12) == 0.0


def test_post_test_probability_at_certainty_is_nan():
    assert math.isnan(post_test_probability(1.0, 2.5))


def test_post_test_probability_undefined_past_certainty():
    # 200%: pre-odds -2, times LR 0.5 gives post-odds -1
    assert math.isnan(post_test_probability(2.0, 0.5))


def test_worked_example_ptau_at_fifty_percent():
    res = _ok(50, 70, PTAU)
    assert res.baseline_risk_percent == 15
    assert res.adjusted_pre_test_probability_percent == 50
    assert not res.below_threshold
    assert res.post_test_probability_if_positive_percent == pytest.approx(90.291, abs=1e-3)
    assert res.post_test_probability_if_negative_percent == pytest.approx(31.507, abs=1e-3)
    assert res.probability_gap_percent == pytest.approx(58.784, abs=1e-3)
    assert res.recommended is True
    assert res.headline == "[RECOMMENDED] Phosphorylated Tau 217 (pTau 217)"
    assert res.recommendation_text == "This test is recommended for diagnosis."


def test_worked_example_pet_at_threshold_runs_post_test_math():
    res = _ok(5, 50, PET)
    assert res.adjusted_pre_test_probability_percent == 5
    assert not res.below_threshold
    assert res.post_test_probability_if_positive_percent == pytest.approx(38.71, abs=1e-2)
    assert res.post_test_probability_if_negative_percent == pytest.approx(1.04, abs=1e-2)
    assert res.recommended is (res.probability_gap_percent > RECOMMENDATION_GAP_PERCENT)
    assert res.tag == "[RECOMMENDED]"


def test_worked_example_nfl_below_threshold_short_circuits():
    res = _ok(0, 40, NFL)
    assert res.baseline_risk_percent == 3
    assert res.adjusted_pre_test_probability_percent == 3
    assert res.below_threshold is True
    assert res.recommended is False
    assert res.tag == "[NOT RECOMMENDED]"
    assert res.post_test_probability_if_positive_percent is None
    assert res.post_test_probability_if_negative_percent is None
    assert res.probability_gap_percent is None


def test_narrow_gap_is_not_recommended():
    # NfL at exactly its threshold: 38.5% vs 11.1%
    res = _ok(20, 50, NFL)
    assert not res.below_threshold
    assert res.probability_gap_percent == pytest.approx(27.35, abs=1e-2)
    assert res.recommended is False
    assert res.recommendation_text == "This test is not strongly recommended."


def test_age_baseline_floors_low_clinician_estimate():
    res = _ok(0, 90, NFL)
    assert res.adjusted_pre_test_probability_percent == 65
    assert res.probability_gap_percent == pytest.approx(34.13, abs=1e-2)
    assert res.recommended is True


def test_adjusted_probability_dominates_both_inputs():
    for prob in (0, 2.5, 12, 37.2, 64.9, 99):
        for age in (30, 60, 68, 73, 79, 84, 95):
            res = _ok(prob, age, GFAP)
            assert res.adjusted_pre_test_probability_percent >= prob
            assert res.adjusted_pre_test_probability_percent >= baseline_risk(age)


def test_certain_pre_test_probability_is_not_recommended():
    res = _ok(100, 70, PTAU)
    assert not res.below_threshold
    assert math.isnan(res.post_test_probability_if_positive_percent)
    assert math.isnan(res.probability_gap_percent)
    assert res.recommended is False


def test_invalid_numbers_take_precedence_over_test_selection():
    for prob, age in (
        ("", 70), ("abc", 70), (50, ""), (50, None), ("Infinity", 70), (float("nan"), 70),
        (10**400, 70), (50, 10**400), (-10**400, 70),
    ):
        out = evaluate(AssessmentInput(prob, age, ""))
        assert isinstance(out, AssessmentError)
        assert out.kind is ErrorKind.INVALID_NUMERIC_INPUT
        assert out.message == "Please enter valid numbers for both fields."


def test_probability_above_hundred_is_not_clamped():
    res = _ok(150, 70, PTAU)
    assert res.clinician_probability_percent == 150
    assert res.adjusted_pre_test_probability_percent == 150
    assert not res.below_threshold
    assert res.probability_gap_percent is not None


def test_oversized_age_text_does_not_raise():
    out = evaluate(AssessmentInput("50", "9" * 5000, PET))
    assert isinstance(out, (AssessmentResult, AssessmentError))


def test_missing_test_selection():
    for sel in ("", None):
        out = evaluate(AssessmentInput("50", "70", sel))
        assert isinstance(out, AssessmentError)
        assert out.kind is ErrorKind.NO_TEST_SELECTED
        assert out.message == "Please select a dementia test to proceed."


def test_unknown_test_name():
    out = evaluate(AssessmentInput(50, 70, "Blood Pressure Cuff"))
    assert isinstance(out, AssessmentError)
    assert out.kind is ErrorKind.TEST_NOT_FOUND
    assert out.message == "Error: Selected test not found."


def test_text_inputs_parse_like_form_fields():
    res = _ok("50%", "70.9", PTAU)
    assert res.clinician_probability_percent == 50
    assert res.patient_age == 70


def test_negative_age_falls_in_lowest_band():
    res = _ok(0, -4, PET)
    assert res.baseline_risk_percent == 3


def test_evaluate_is_idempotent():
    a = evaluate(AssessmentInput(33.3, 77, GFAP))
    b = evaluate(AssessmentInput(33.3, 77, GFAP))
    assert a == b
    assert render_quick_text(a) == render_quick_text(b)


def test_quick_text_full_report():
    text = render_quick_text(_ok(50, 70, PTAU))
    assert text == (
        "Patient Age: 70\n"
        "Baseline Risk: 15.0%\n"
        "Doctor's Estimated Probability: 50.0%\n"
        "Adjusted Pre-Test Probability: 50.0%\n"
        "\n"
        "Selected Test: Phosphorylated Tau 217 (pTau 217)\n"
        "Test Threshold: 10%\n"
        "Likelihood Ratios: LR+ = 9.3, LR− = 0.46\n"
        "\n"
        "Post-Test Probabilities:\n"
        "- If Positive: 90.3%\n"
        "- If Negative: 31.5%\n"
        "- Probability Gap: 58.8%"
    )


def test_quick_text_below_threshold():
    text = render_quick_text(_ok(0, 40, NFL))
    assert text.endswith("Pre-test probability (3.0%) is below the threshold of 20%")
    assert "Post-Test Probabilities" not in text


def test_trace_records_rule_firings():
    res = _ok(0, 40, NFL)
    rules = [t["rule"] for t in res.trace]
    assert rules[0] == "Engine_start"
    assert "Below_threshold" in rules
    assert "Post_test_positive" not in rules
    assert rules[-1] == "Engine_end"

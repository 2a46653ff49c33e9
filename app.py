# app.py
# ============================================================
# Dementia Test Recommender — Streamlit app with:
# - Clinician probability (%) + patient age as free text
# - Test picker over the fixed catalog
# - Parse warnings as badges (value kept, user told)
# - Recommendation card + Details card + probability ladder
# - One usage log line per evaluation
# ============================================================

from __future__ import annotations

import logging
import os
import uuid
from typing import Any

import streamlit as st

from dementia_engine import VERSION, catalog_names
from dementia_output_adapter import evaluate_unified
from rc_viz.ladder.probability_ladder import render_probability_ladder_html
from ui_components import render_recommendation_bar


# ============================================================
# Configuration + logging
# ============================================================

LOG_LEVEL = os.getenv("DEMENTIA_RISK_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("DEMENTIA_RISK_LOG_FILE") or None

logging.basicConfig(
    filename=LOG_FILE,
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s | %(message)s",
)
logger = logging.getLogger("dementia_risk")


def log_usage(tool_name: str, inputs: Any, outputs: Any = None):
    session_id = str(uuid.uuid4())[:8]
    logger.info(f"session={session_id} tool={tool_name} inputs={inputs} outputs={outputs}")


# ============================================================
# Styling
# ============================================================

st.set_page_config(page_title="Dementia Risk Calculator", layout="centered")

st.markdown(
    """
<style>
html, body, [class*="css"] {
  font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, Inter, "Helvetica Neue", Arial, sans-serif;
  color: #111827;
}

.smallcaps {
  font-variant: all-small-caps;
  letter-spacing: 0.06em;
  color: rgba(17,24,39,0.72);
}

.card {
  background: #ffffff;
  border: 1px solid rgba(17,24,39,0.12);
  border-radius: 16px;
  padding: 16px;
}

.muted {
  color: rgba(17,24,39,0.65);
  font-size: 0.92rem;
}

.badge {
  display: inline-block;
  padding: 2px 10px;
  border-radius: 999px;
  border: 1px solid rgba(17,24,39,0.14);
  font-size: 0.82rem;
  margin-right: 6px;
}

.badge-warn {
  background: rgba(245,158,11,0.10);
  border-color: rgba(245,158,11,0.25);
}

pre {
  white-space: pre-wrap !important;
  word-wrap: break-word !important;
}
</style>
""",
    unsafe_allow_html=True,
)


# ============================================================
# Header
# ============================================================

st.markdown(
    f"""
<div class="card">
  <div style="display:flex;justify-content:space-between;align-items:center;gap:12px;">
    <div>
      <div class="smallcaps">Dementia Risk Calculator</div>
      <div style="font-size:1.35rem;font-weight:700;margin-top:4px;">Calculate and interpret dementia risk based on test results</div>
      <div class="muted" style="margin-top:4px;">Pre-test probability is floored at the age-band baseline, then updated with the selected test's likelihood ratios.</div>
    </div>
    <div style="text-align:right;">
      <span class="badge">Engine {VERSION['engine']}</span>
    </div>
  </div>
</div>
""",
    unsafe_allow_html=True,
)


# ============================================================
# Form
# ============================================================

TEST_PLACEHOLDER = ""

with st.form("risk_form"):
    probability_raw = st.text_input(
        "Doctor Estimated Dementia Probability (%)",
        value=st.session_state.get("probability_raw", "0"),
        placeholder="Enter probability (0-100)",
    )
    age_raw = st.text_input(
        "Patient Age",
        value=st.session_state.get("age_raw", "0"),
        placeholder="Enter patient age",
    )
    selected_test = st.selectbox(
        "Select Blood Test",
        options=[TEST_PLACEHOLDER] + catalog_names(),
        format_func=lambda x: "Select a test..." if x == TEST_PLACEHOLDER else x,
    )
    submitted = st.form_submit_button("Calculate Risk", type="primary", use_container_width=True)

if submitted:
    st.session_state["probability_raw"] = probability_raw
    st.session_state["age_raw"] = age_raw
    try:
        out = evaluate_unified(probability_raw, age_raw, selected_test or None)
        st.session_state["last_output"] = out
        log_usage(
            "dementia_risk",
            {"probability": probability_raw, "age": age_raw, "test": selected_test},
            (out.get("recommendation") or {}).get("headline") or (out.get("error") or {}).get("kind"),
        )
    except Exception as e:
        logger.exception("evaluation failed")
        st.error(f"Engine error: {e}")


# ============================================================
# Output area
# ============================================================

out = st.session_state.get("last_output")

if not out:
    st.markdown('<div class="muted">Enter the fields above and click <b>Calculate Risk</b>.</div>', unsafe_allow_html=True)

elif out.get("status") == "error":
    st.warning(out["error"]["message"])

else:
    warnings = out.get("parseWarnings") or []
    for w in warnings:
        st.markdown(f'<span class="badge badge-warn">{w}</span>', unsafe_allow_html=True)

    rec = out["recommendation"]
    st.markdown("#### Recommendation")
    st.markdown(f"{rec['headline']} {rec['text']}")
    st.markdown(render_recommendation_bar(out), unsafe_allow_html=True)

    st.markdown("#### Details")
    st.code(out["details"], language=None)

    st.markdown(render_probability_ladder_html(out), unsafe_allow_html=True)

    with st.expander("Debug: rule trace"):
        st.json(out.get("trace", []))

    with st.expander("Debug: output contract"):
        st.json(out)

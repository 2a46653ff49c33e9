from __future__ import annotations

from typing import Any, Dict, List, Optional
import html
import math


def _esc(x: Any) -> str:
    return html.escape(str(x), quote=True)


def _pct_or_none(x: Any) -> Optional[float]:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    if math.isnan(v):
        return None
    return v


def _clamp_pct(v: float) -> float:
    return max(0.0, min(100.0, v))


def render_probability_ladder_html(out: Dict[str, Any]) -> str:
    """
    Probability ladder (render-only).
    Places P(disease | negative), adjusted pre-test and P(disease | positive) on
    a 0–100 track, with the test threshold marked.
    Requires the adapter contract: out["figures"] and out["selectedTest"].
    """
    if (out or {}).get("status") != "ok":
        return ""

    fig = out.get("figures") or {}
    test = out.get("selectedTest") or {}
    threshold = _pct_or_none(test.get("thresholdPercent"))
    pre = _pct_or_none(fig.get("adjustedPreTestProbabilityPercent"))
    pos = _pct_or_none(fig.get("postTestProbabilityIfPositivePercent"))
    neg = _pct_or_none(fig.get("postTestProbabilityIfNegativePercent"))

    # Engine-owned roles, stable colors
    marks: List[Dict[str, Any]] = []
    if neg is not None:
        marks.append({"key": "negative", "label": "If negative", "value": neg, "color": "#16a34a"})
    if pre is not None:
        marks.append({"key": "pre", "label": "Pre-test", "value": pre, "color": "#64748b"})
    if pos is not None:
        marks.append({"key": "positive", "label": "If positive", "value": pos, "color": "#b91c1c"})

    if pos is None or neg is None:
        note = (
            "Below the test threshold; post-test probabilities not calculated."
            if out.get("belowThreshold")
            else "Post-test probabilities undefined for this pre-test probability."
        )
        return f"""
<div style="border:1px solid rgba(31,41,55,0.14); border-radius:16px; background:#fff; padding:14px;">
  <div style="font-variant-caps:all-small-caps; letter-spacing:0.14em; font-weight:975;">
    Probability ladder
  </div>
  <div style="margin-top:8px; color:rgba(31,41,55,0.72); font-size:0.9rem;">
    {_esc(note)}
  </div>
</div>
""".strip()

    lo, hi = sorted((_clamp_pct(neg), _clamp_pct(pos)))
    gap_band = f"""
<div class="pl-gap" style="left:{lo:.1f}%; width:{hi - lo:.1f}%;"
     title="Probability gap: {abs(pos - neg):.1f} points"></div>
""".strip()

    threshold_line = ""
    if threshold is not None:
        threshold_line = f"""
<div class="pl-threshold" style="left:{_clamp_pct(threshold):.1f}%;"
     title="Test threshold: {threshold:g}%"></div>
""".strip()

    pins = ""
    legend_items = ""
    for m in marks:
        pins += f"""
<div class="pl-pin" style="left:{_clamp_pct(m['value']):.1f}%; background:{_esc(m['color'])};"
     title="{_esc(m['label'])}: {m['value']:.1f}%"></div>
""".strip()
        swatch = f"<span class='pl-swatch' style='background:{_esc(m['color'])};'></span>"
        legend_items += f"""
<div class="pl-legend-row">
  <div class="pl-legend-left">{swatch}<span>{_esc(m['label'])}</span></div>
  <div class="pl-legend-val">{m['value']:.1f}%</div>
</div>
""".strip()

    return f"""
<style>
  .pl-wrap {{
    border: 1px solid rgba(31,41,55,0.14);
    border-radius: 16px;
    background: linear-gradient(180deg, #ffffff 0%, #fbfbfc 100%);
    box-shadow: 0 10px 30px rgba(0,0,0,0.06);
    padding: 14px 14px;
  }}

  .pl-title {{
    font-variant-caps: all-small-caps;
    letter-spacing: 0.14em;
    font-weight: 975;
    font-size: 0.98rem;
    color: rgba(17,24,39,0.90);
  }}

  .pl-track {{
    position: relative;
    height: 28px;
    margin: 14px 0 6px 0;
    border-radius: 999px;
    border: 1px solid rgba(31,41,55,0.14);
    background: #ffffff;
  }}

  .pl-gap {{
    position: absolute;
    top: 0;
    bottom: 0;
    background: rgba(59,130,246,0.14);
  }}

  .pl-threshold {{
    position: absolute;
    top: -4px;
    bottom: -4px;
    width: 0;
    border-left: 2px dashed rgba(17,24,39,0.55);
  }}

  .pl-pin {{
    position: absolute;
    top: 6px;
    width: 14px;
    height: 14px;
    margin-left: -7px;
    border-radius: 999px;
    border: 2px solid #ffffff;
    box-shadow: 0 1px 3px rgba(0,0,0,0.25);
  }}

  .pl-scale {{
    display: flex;
    justify-content: space-between;
    font-size: 0.76rem;
    color: rgba(31,41,55,0.62);
    font-weight: 800;
  }}

  .pl-legend-row {{
    display: flex;
    justify-content: space-between;
    gap: 10px;
    padding: 6px 0;
    border-bottom: 1px solid rgba(31,41,55,0.06);
    align-items: center;
  }}

  .pl-legend-row:last-child {{
    border-bottom: 0;
  }}

  .pl-legend-left {{
    display: flex;
    align-items: center;
    gap: 8px;
    font-size: 0.84rem;
    color: rgba(17,24,39,0.86);
    font-weight: 900;
  }}

  .pl-swatch {{
    width: 12px;
    height: 12px;
    border-radius: 3px;
    border: 1px solid rgba(31,41,55,0.12);
  }}

  .pl-legend-val {{
    font-size: 0.84rem;
    color: rgba(31,41,55,0.72);
    font-weight: 950;
  }}
</style>

<div class="pl-wrap">
  <div class="pl-title">Probability ladder — {_esc(test.get('name', ''))}</div>

  <div class="pl-track">
    {gap_band}
    {threshold_line}
    {pins}
  </div>
  <div class="pl-scale"><span>0%</span><span>50%</span><span>100%</span></div>

  <div style="margin-top:10px;">
    {legend_items}
  </div>
</div>
""".strip()

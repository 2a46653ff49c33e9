# ui_components.py
from typing import Any, Dict


def render_recommendation_bar(out: Dict[str, Any]) -> str:
    """
    Two-step bar (Not recommended / Recommended) for an adapter contract.
    Errors render nothing; the page shows the message instead.
    """
    if (out or {}).get("status") != "ok":
        return ""

    rec = out.get("recommendation") or {}
    active_idx = 1 if rec.get("recommended") else 0

    labels = [
        ("[NOT RECOMMENDED]", "Result unlikely to change the diagnostic picture"),
        ("[RECOMMENDED]", "Positive vs negative result differs by > 30 points"),
    ]

    segs = []
    for i, (tag, hint) in enumerate(labels):
        active = (i == active_idx)
        segs.append(f"""
        <div style="
            flex:1;
            padding:10px 10px;
            border:1px solid rgba(31,41,55,0.18);
            border-radius:12px;
            background:{'rgba(31,41,55,0.06)' if active else '#fff'};
            font-weight:{'800' if active else '600'};
            text-align:center;
            font-size:0.88rem;
        ">
          {tag}
          <div style="font-weight:600; font-size:0.78rem; color:rgba(31,41,55,0.70); margin-top:2px;">
            {hint}
          </div>
        </div>
        """)

    name = (out.get("selectedTest") or {}).get("name", "")
    sub = " <span style='font-weight:700; color:rgba(31,41,55,0.70)'>(below threshold)</span>" if out.get("belowThreshold") else ""
    return f"""
    <div style="margin-top:8px; margin-bottom:10px;">
      <div style="font-weight:900; font-size:1.0rem; margin-bottom:6px;">
        {name}{sub}
      </div>
      <div style="display:flex; gap:8px;">
        {''.join(segs)}
      </div>
    </div>
    """

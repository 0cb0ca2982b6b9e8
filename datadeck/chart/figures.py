from __future__ import annotations
from pathlib import Path
from typing import Any, List, Optional, Sequence
import math
import tempfile

import numpy as np
import plotly.graph_objects as go

from ..analysis.numeric import format_number, format_number_short, to_number
from ..dashboard.pipeline import WidgetView

COLORWAY = ["#818cf8", "#34d399", "#f472b6", "#fbbf24", "#60a5fa", "#a78bfa", "#2dd4bf", "#fb7185"]

_PLACEHOLDERS = {
    "missing_dataset": "Source data missing",
    "no_mapping": "No chart data available.",
}


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _numbers(values: Sequence[Any]) -> List[Optional[float]]:
    out: List[Optional[float]] = []
    for v in values:
        x = to_number(v)
        out.append(None if math.isnan(x) else x)
    return out


def _short_ticks(series: Sequence[Sequence[Optional[float]]], n: int = 5) -> tuple[list, list]:
    flat = [x for s in series for x in s if x is not None and math.isfinite(x)]
    if not flat:
        return [], []
    lo, hi = min(0.0, min(flat)), max(flat)
    if hi == lo:
        hi = lo + 1.0
    vals = [float(v) for v in np.linspace(lo, hi, n)]
    return vals, [format_number_short(v) for v in vals]


def _placeholder(view: WidgetView) -> go.Figure:
    fig = go.Figure()
    fig.add_annotation(text=_PLACEHOLDERS.get(view.status, ""), showarrow=False,
                       xref="paper", yref="paper", x=0.5, y=0.5)
    fig.update_layout(title=view.title, xaxis_visible=False, yaxis_visible=False)
    return fig


def _cell_text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return format_number(v)
    return str(v)


def _table(view: WidgetView) -> go.Figure:
    cols = list(view.columns)
    cells = [[_cell_text(r.get(c)) for r in view.rows] for c in cols]
    fig = go.Figure(go.Table(header=dict(values=cols), cells=dict(values=cells)))
    fig.update_layout(title=f"{view.title} (showing {len(view.rows)} of {view.total_rows} rows)")
    return fig


def _pie(view: WidgetView) -> go.Figure:
    m = view.mapping
    labels = [r.get(m.x_axis_key) for r in view.rows]
    values = _numbers([r.get(m.data_keys[0]) for r in view.rows])
    fig = go.Figure(go.Pie(labels=labels, values=values, hole=0.4, marker=dict(colors=COLORWAY)))
    fig.update_layout(title=view.title)
    if view.is_truncated and view.rows:
        fig.add_annotation(text=f"* Top {len(view.rows)} items shown", showarrow=False,
                           xref="paper", yref="paper", x=0.5, y=-0.1)
    return fig


def _cartesian(view: WidgetView) -> go.Figure:
    m = view.mapping
    x = [r.get(m.x_axis_key) for r in view.rows]
    fig = go.Figure()
    series = []
    for i, key in enumerate(m.data_keys):
        ys = _numbers([r.get(key) for r in view.rows])
        series.append(ys)
        color = COLORWAY[i % len(COLORWAY)]
        hover = [format_number(y) for y in ys]
        if view.type == "bar":
            fig.add_trace(go.Bar(x=x, y=ys, name=key, marker_color=color, hovertext=hover))
        elif view.type == "area":
            fig.add_trace(go.Scatter(x=x, y=ys, name=key, mode="lines", fill="tozeroy",
                                     line=dict(color=color), hovertext=hover))
        else:
            fig.add_trace(go.Scatter(x=x, y=ys, name=key, mode="lines", line=dict(color=color), hovertext=hover))
    tickvals, ticktext = _short_ticks(series)
    fig.update_layout(title=view.title, barmode="group", colorway=COLORWAY)
    if tickvals:
        fig.update_yaxes(tickvals=tickvals, ticktext=ticktext)
    return fig


def widget_figure(view: WidgetView) -> go.Figure:
    """Plotly figure for a pipeline view; non-ok views get a placeholder."""
    if view.status != "ok":
        return _placeholder(view)
    if view.type == "table":
        return _table(view)
    if view.type == "pie":
        return _pie(view)
    return _cartesian(view)


def export_html(fig, out_html: Optional[str] = None) -> Path:
    """Write a self-contained HTML file for a Plotly figure and return its path."""
    from plotly.io import to_html
    html = to_html(fig, full_html=True, include_plotlyjs="cdn")
    if out_html is None:
        tmp = tempfile.NamedTemporaryFile(delete=False, suffix=".html")
        tmp.write(html.encode("utf-8"))
        tmp.flush()
        tmp.close()
        return Path(tmp.name)
    out = Path(out_html)
    _ensure_parent(out)
    out.write_text(html, encoding="utf-8")
    return out


def export_page_html(views: Sequence[WidgetView], out_html: str) -> Path:
    """All widget figures of a page in one HTML file, in page order."""
    from plotly.io import to_html
    parts = [to_html(widget_figure(v), full_html=False, include_plotlyjs="cdn" if i == 0 else False)
             for i, v in enumerate(views)]
    out = Path(out_html)
    _ensure_parent(out)
    out.write_text("<html><body>\n" + "\n".join(parts) + "\n</body></html>", encoding="utf-8")
    return out

"""Chart rendering for dashboard widgets"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import plotly.graph_objects as go
from nicegui import ui

from dashboard_builder.models import DEFAULT_DATA_KEY, ChartType, DataPoint, Widget, scalar

logger = logging.getLogger(__name__)

COLORS = ["#0088FE", "#00C49F", "#FFBB28", "#FF8042", "#8884d8"]

SAMPLE_DATA: Dict[str, List[DataPoint]] = {
    ChartType.LINE.value: [
        {"name": "Jan", "value1": 400, "value2": 240},
        {"name": "Feb", "value1": 300, "value2": 139},
        {"name": "Mar", "value1": 200, "value2": 980},
        {"name": "Apr", "value1": 278, "value2": 390},
        {"name": "May", "value1": 189, "value2": 480},
        {"name": "Jun", "value1": 239, "value2": 380},
    ],
    ChartType.BAR.value: [
        {"name": "Q1", "sales": 4000, "profit": 2400},
        {"name": "Q2", "sales": 3000, "profit": 1398},
        {"name": "Q3", "sales": 2000, "profit": 9800},
        {"name": "Q4", "sales": 2780, "profit": 3908},
    ],
    ChartType.AREA.value: [
        {"name": "2019", "users": 4000, "sessions": 2400},
        {"name": "2020", "users": 3000, "sessions": 1398},
        {"name": "2021", "users": 2000, "sessions": 9800},
        {"name": "2022", "users": 2780, "sessions": 3908},
        {"name": "2023", "users": 1890, "sessions": 4800},
    ],
    ChartType.PIE.value: [
        {"name": "Mobile", "value": 400},
        {"name": "Desktop", "value": 300},
        {"name": "Tablet", "value": 200},
        {"name": "Other", "value": 100},
    ],
}

INVALID_TYPE_MESSAGE = "Invalid chart type"
NO_DATA_MESSAGE = "No data available to display."


def _chart_type(value: Any) -> Optional[ChartType]:
    try:
        return ChartType(value)
    except ValueError:
        return None


def normalize_points(data: Any) -> List[DataPoint]:
    """Coerce result data into a list of point dicts.

    A mapping of label to value becomes name/value points; array-valued
    cells collapse to their first element.
    """
    if not data:
        return []
    if isinstance(data, Mapping):
        return [{"name": str(k), "value": scalar(v)} for k, v in data.items()]
    points = []
    for point in data:
        if isinstance(point, Mapping):
            points.append({k: scalar(v) if k != "name" else v for k, v in point.items()})
    return points


def resolve_data_keys(data_keys: Optional[Sequence[str]]) -> List[str]:
    keys = [k for k in (data_keys or []) if k]
    return keys or [DEFAULT_DATA_KEY]


def _numeric_keys(points: List[DataPoint]) -> List[str]:
    if not points:
        return []
    return [k for k, v in points[0].items() if k != "name" and isinstance(v, (int, float))]


def chart_data(widget: Widget) -> tuple[List[DataPoint], List[str]]:
    """Points and series keys to plot, falling back to the sample set for the chart type"""
    keys = resolve_data_keys(widget.data_keys)
    if widget.data:
        return normalize_points(widget.data), keys

    sample = SAMPLE_DATA.get(getattr(widget.type, "value", widget.type), [])
    available = _numeric_keys(sample)
    present = [k for k in keys if k in available]
    return sample, present or available


def _number(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def build_figure(chart_type: Any, data: Any, data_keys: Optional[Sequence[str]] = None) -> Optional[go.Figure]:
    """Plotly figure for a chart type, or None when the type is not supported"""
    kind = _chart_type(chart_type)
    if kind is None:
        return None

    points = normalize_points(data)
    keys = resolve_data_keys(data_keys)
    labels = [p.get("name") for p in points]

    match kind:
        case ChartType.LINE:
            fig = go.Figure()
            for index, key in enumerate(keys):
                fig.add_trace(go.Scatter(
                    x=labels,
                    y=[_number(p.get(key)) for p in points],
                    name=key,
                    mode="lines+markers",
                    line=dict(shape="spline", width=3, color=COLORS[index % len(COLORS)]),
                    marker=dict(size=8),
                ))
        case ChartType.AREA:
            fig = go.Figure()
            for index, key in enumerate(keys):
                fig.add_trace(go.Scatter(
                    x=labels,
                    y=[_number(p.get(key)) for p in points],
                    name=key,
                    mode="lines",
                    fill="tozeroy",
                    line=dict(shape="spline", width=2, color=COLORS[index % len(COLORS)]),
                ))
        case ChartType.BAR:
            key = keys[0]
            fig = go.Figure(data=go.Bar(
                x=labels,
                y=[_number(p.get(key)) for p in points],
                name="Value",
                marker_color=[COLORS[i % len(COLORS)] for i in range(len(points))],
                text=[_number(p.get(key)) for p in points],
                textposition="auto",
            ))
            fig.update_xaxes(tickangle=-45)
        case ChartType.PIE:
            key = keys[0]
            fig = go.Figure(data=go.Pie(
                labels=labels,
                values=[_number(p.get(key)) for p in points],
                marker=dict(colors=COLORS),
            ))
            fig.update_layout(legend=dict(orientation="h", yanchor="top", y=-0.1, xanchor="center", x=0.5))

    fig.update_layout(
        margin=dict(l=20, r=20, t=20, b=60),
        showlegend=kind in (ChartType.LINE, ChartType.AREA, ChartType.PIE),
        autosize=True,
    )
    return fig


def render_chart(widget: Widget) -> None:
    """Place the chart for a widget in the current NiceGUI container"""
    if _chart_type(widget.type) is None:
        logger.warning(f"Widget {widget.id} has unknown chart type {widget.type!r}")
        ui.label(INVALID_TYPE_MESSAGE).classes("text-gray-500")
        return

    points, keys = chart_data(widget)
    if not points:
        ui.label(NO_DATA_MESSAGE).classes("text-gray-500")
        return

    fig = build_figure(widget.type, points, keys)
    ui.plotly(fig).classes("w-full h-full")

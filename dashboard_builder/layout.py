"""Maps widget layouts to and from the responsive grid's per-breakpoint layouts.

All breakpoints receive the same x/y/w/h for a widget: the dashboard keeps a
single layout and only the CSS rendering clamps it to each breakpoint's
column count.

The page renders tiles with `grid_css`, which reads the per-breakpoint
layouts from `to_grid_layouts`. `breakpoint_for` and `from_grid_layout` are
the engine-facing half: they map a viewport width to its breakpoint and write
a grid engine's layout report back into the store.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Union

from dashboard_builder.models import MIN_TILE_HEIGHT, MIN_TILE_WIDTH, Widget, WidgetLayout
from dashboard_builder.store import DashboardStore, Widgets, apply_layout

logger = logging.getLogger(__name__)

ROW_HEIGHT = 100


@dataclass(frozen=True)
class Breakpoint:
    name: str
    min_width: int
    columns: int


BREAKPOINTS = (
    Breakpoint("lg", 1200, 12),
    Breakpoint("md", 996, 10),
    Breakpoint("sm", 768, 6),
    Breakpoint("xs", 480, 4),
    Breakpoint("xxs", 0, 2),
)


def breakpoint_for(width: int) -> Breakpoint:
    """The widest breakpoint whose threshold the viewport width reaches"""
    for bp in BREAKPOINTS:
        if width >= bp.min_width:
            return bp
    return BREAKPOINTS[-1]


def grid_item(widget: Widget) -> Dict[str, Any]:
    """Grid-engine layout entry for one widget, with the minimum size as a floor"""
    layout = widget.layout
    return {
        "i": widget.id,
        "x": max(layout.x, 0),
        "y": max(layout.y, 0),
        "w": max(layout.w, MIN_TILE_WIDTH),
        "h": max(layout.h, MIN_TILE_HEIGHT),
        "minW": MIN_TILE_WIDTH,
        "minH": MIN_TILE_HEIGHT,
    }


def to_grid_layouts(widgets: Iterable[Widget]) -> Dict[str, List[Dict[str, Any]]]:
    """One layout list per breakpoint, identical across breakpoints"""
    items = [grid_item(w) for w in widgets]
    return {bp.name: [dict(item) for item in items] for bp in BREAKPOINTS}


def layout_updates(items: Iterable[Mapping[str, Any]]) -> Dict[str, WidgetLayout]:
    """Layout updates keyed by widget id from a grid-engine report"""
    updates = {}
    for item in items:
        widget_id = item.get("i")
        if not widget_id:
            continue
        updates[str(widget_id)] = WidgetLayout(
            x=max(int(item.get("x", 0)), 0),
            y=max(int(item.get("y", 0)), 0),
            w=max(int(item.get("w", MIN_TILE_WIDTH)), MIN_TILE_WIDTH),
            h=max(int(item.get("h", MIN_TILE_HEIGHT)), MIN_TILE_HEIGHT),
        )
    return updates


def from_grid_layout(
    target: Union[DashboardStore, Widgets], items: Iterable[Mapping[str, Any]]
) -> Widgets:
    """Write a grid-engine layout report back into the widgets.

    Widgets missing from the report keep their layout and ids not in the
    store are ignored. A store is updated in place; a widget tuple yields a
    new tuple.
    """
    updates = layout_updates(items)
    if isinstance(target, DashboardStore):
        target.apply_layout(updates)
        return target.widgets
    return apply_layout(target, updates)


def moved(widget: Widget, dx: int = 0, dy: int = 0, dw: int = 0, dh: int = 0) -> Dict[str, Any]:
    """Grid-engine entry for a widget nudged by a move/resize control"""
    item = grid_item(widget)
    item["x"] = max(item["x"] + dx, 0)
    item["y"] = max(item["y"] + dy, 0)
    item["w"] = max(item["w"] + dw, MIN_TILE_WIDTH)
    item["h"] = max(item["h"] + dh, MIN_TILE_HEIGHT)
    return item


def _tile_rule(item: Mapping[str, Any], columns: int) -> str:
    w = min(item["w"], columns)
    x = min(item["x"], columns - w)
    return (
        f".tile-{item['i']} {{ grid-column: {x + 1} / span {w}; "
        f"grid-row: {item['y'] + 1} / span {item['h']}; }}"
    )


def grid_css(widgets: Iterable[Widget]) -> str:
    """Stylesheet placing each tile, with one media query per breakpoint"""
    layouts = to_grid_layouts(widgets)
    blocks = [f".dashboard-grid {{ display: grid; gap: 16px; grid-auto-rows: {ROW_HEIGHT}px; }}"]
    for bp in reversed(BREAKPOINTS):
        rules = [f".dashboard-grid {{ grid-template-columns: repeat({bp.columns}, minmax(0, 1fr)); }}"]
        rules += [_tile_rule(item, bp.columns) for item in layouts[bp.name]]
        body = "\n".join(rules)
        if bp.min_width:
            blocks.append(f"@media (min-width: {bp.min_width}px) {{\n{body}\n}}")
        else:
            blocks.append(body)
    return "\n".join(blocks)

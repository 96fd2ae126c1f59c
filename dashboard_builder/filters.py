"""Derives the visible widget subset from the dashboard filter state"""
import math
from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from dashboard_builder.models import DEFAULT_DATA_KEY, ChartType, Widget, scalar


class DateRange(BaseModel):
    """Inclusive date bounds; either side may be open"""
    model_config = ConfigDict(frozen=True)

    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def is_set(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, moment: datetime) -> bool:
        day = moment.date()
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


class FilterState(BaseModel):
    """Current visibility predicate over the widget store"""
    model_config = ConfigDict(frozen=True)

    title: str = ""
    type: Optional[ChartType] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    date_range: DateRange = Field(default_factory=DateRange)
    data_sources: List[str] = Field(default_factory=list)

    @property
    def has_value_range(self) -> bool:
        return self.min_value is not None or self.max_value is not None

    @property
    def is_active(self) -> bool:
        return bool(
            self.title
            or self.type is not None
            or self.has_value_range
            or self.date_range.is_set
            or self.data_sources
        )


def _as_float(value: Any) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(out):
        return None
    return out


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def normalize_filters(raw: dict) -> FilterState:
    """Build a FilterState from loosely typed form values (empty strings mean unset)"""
    type_value = raw.get("type") or None
    try:
        chart_type = ChartType(type_value) if type_value else None
    except ValueError:
        chart_type = None

    date_raw = raw.get("date_range") or {}
    data_sources = raw.get("data_sources") or []
    if isinstance(data_sources, str):
        data_sources = [s.strip() for s in data_sources.split(",") if s.strip()]

    return FilterState(
        title=(raw.get("title") or "").strip(),
        type=chart_type,
        min_value=_as_float(raw.get("min_value")),
        max_value=_as_float(raw.get("max_value")),
        date_range=DateRange(start=_as_date(date_raw.get("start")), end=_as_date(date_raw.get("end"))),
        data_sources=[str(s) for s in data_sources],
    )


def _numeric(value: Any) -> Optional[float]:
    value = scalar(value)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return _as_float(value) if isinstance(value, str) else None
    return float(value)


def has_value_in_range(widget: Widget, low: Optional[float], high: Optional[float]) -> bool:
    """True when any point of the widget has a `value` inside [low, high].

    Only the result value counts, so display settings such as the data keys
    never change which widgets pass.
    """
    low = -math.inf if low is None else low
    high = math.inf if high is None else high
    for point in widget.data:
        value = _numeric(point.get(DEFAULT_DATA_KEY))
        if value is not None and low <= value <= high:
            return True
    return False


def matches(widget: Widget, filters: FilterState) -> bool:
    """Whether a widget passes every active filter"""
    if filters.title and filters.title.lower() not in widget.title.lower():
        return False
    if filters.type is not None and widget.type != filters.type:
        return False
    if filters.has_value_range and not has_value_in_range(widget, filters.min_value, filters.max_value):
        return False
    if filters.date_range.is_set and not filters.date_range.contains(widget.created_at):
        return False
    if filters.data_sources:
        entities = widget.query_payload.entities if widget.query_payload else []
        if not any(entity in filters.data_sources for entity in entities):
            return False
    return True


def visible_widgets(widgets: Iterable[Widget], filters: FilterState) -> List[Widget]:
    """Widgets matching the filters, in store order"""
    return [w for w in widgets if matches(w, filters)]

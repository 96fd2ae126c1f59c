"""In-memory widget store with reducer-style transitions"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Set, Tuple
from uuid import uuid4

from dashboard_builder.errors import WidgetNotFoundError
from dashboard_builder.filters import FilterState, visible_widgets
from dashboard_builder.models import DEFAULT_TITLE, ChartType, DataPoint, Widget, WidgetDraft, WidgetLayout
from dashboard_builder.reporting_client import ReportingClient

logger = logging.getLogger(__name__)

Widgets = Tuple[Widget, ...]
DEFAULT_LAYOUT = WidgetLayout(x=0, y=0, w=3, h=3)


def new_widget_id() -> str:
    return f"widget-{uuid4().hex}"


def _index_of(widgets: Widgets, widget_id: str) -> int:
    for index, widget in enumerate(widgets):
        if widget.id == widget_id:
            return index
    raise WidgetNotFoundError(widget_id)


def _replace_at(widgets: Widgets, index: int, widget: Widget) -> Widgets:
    return widgets[:index] + (widget,) + widgets[index + 1:]


def _title(title: Optional[str]) -> str:
    return (title or "").strip() or DEFAULT_TITLE


def add_widget(widgets: Widgets, draft: WidgetDraft, widget_id: Optional[str] = None) -> Widgets:
    """Append a widget built from a draft, assigning an id and a fallback layout"""
    widget_id = widget_id or new_widget_id()
    if any(w.id == widget_id for w in widgets):
        raise ValueError(f"Duplicate widget id: {widget_id}")

    layout = (draft.layout or DEFAULT_LAYOUT).with_minimum_size()
    widget = Widget(
        id=widget_id,
        type=draft.type,
        title=_title(draft.title),
        data_keys=list(draft.data_keys),
        data=list(draft.data),
        layout=layout,
        query_payload=draft.query_payload,
    )
    return widgets + (widget,)


def apply_layout(widgets: Widgets, updates: Mapping[str, WidgetLayout]) -> Widgets:
    """Overwrite the layout of every widget that has an update; unknown ids are ignored"""
    result = []
    for widget in widgets:
        layout = updates.get(widget.id)
        if layout is not None and layout != widget.layout:
            widget = widget.model_copy(update={"layout": layout.with_minimum_size()})
        result.append(widget)
    return tuple(result)


def edit_widget(
    widgets: Widgets,
    widget_id: str,
    *,
    title: Optional[str] = None,
    type: Optional[ChartType] = None,
    data_keys: Optional[List[str]] = None,
) -> Widgets:
    """Partial update of a widget's display settings; data and layout are untouched"""
    index = _index_of(widgets, widget_id)
    changes: Dict[str, object] = {}
    if title is not None:
        changes["title"] = _title(title)
    if type is not None:
        changes["type"] = ChartType(type)
    if data_keys is not None:
        keys = [k.strip() for k in data_keys if k and k.strip()]
        changes["data_keys"] = keys or ["value"]
    if not changes:
        return widgets
    changes["updated_at"] = datetime.now(timezone.utc)
    return _replace_at(widgets, index, widgets[index].model_copy(update=changes))


def replace_data(widgets: Widgets, widget_id: str, data: List[DataPoint]) -> Widgets:
    """Swap in freshly fetched data for one widget"""
    index = _index_of(widgets, widget_id)
    updated = widgets[index].model_copy(update={"data": list(data), "updated_at": datetime.now(timezone.utc)})
    return _replace_at(widgets, index, updated)


def remove_widget(widgets: Widgets, widget_id: str) -> Widgets:
    """Drop one widget, keeping the order of the rest"""
    index = _index_of(widgets, widget_id)
    return widgets[:index] + widgets[index + 1:]


class DashboardStore:
    """Authoritative widget collection and filter state for one page session.

    Every mutation replaces the widget snapshot with a new tuple and then
    notifies listeners, so views never observe a half-applied change.
    """

    def __init__(self, widgets: Widgets = (), filters: Optional[FilterState] = None):
        self._widgets: Widgets = tuple(widgets)
        self._filters = filters or FilterState()
        self._listeners: List[Callable[[], None]] = []
        self.refreshing: Set[str] = set()

    @property
    def widgets(self) -> Widgets:
        return self._widgets

    @property
    def filters(self) -> FilterState:
        return self._filters

    def __len__(self) -> int:
        return len(self._widgets)

    def subscribe(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def _commit(self, widgets: Widgets) -> None:
        if widgets is self._widgets:
            return
        self._widgets = widgets
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    def get(self, widget_id: str) -> Widget:
        return self._widgets[_index_of(self._widgets, widget_id)]

    def visible(self) -> List[Widget]:
        return visible_widgets(self._widgets, self._filters)

    def next_row(self) -> int:
        """First grid row below every tile"""
        return max((w.layout.bottom for w in self._widgets), default=0)

    def add(self, draft: WidgetDraft) -> Widget:
        widgets = add_widget(self._widgets, draft)
        widget = widgets[-1]
        self._commit(widgets)
        logger.info(f"Added widget: {widget.title} (ID: {widget.id})")
        return widget

    def apply_layout(self, updates: Mapping[str, WidgetLayout]) -> None:
        widgets = apply_layout(self._widgets, updates)
        if widgets != self._widgets:
            logger.debug(f"Applied layout for {len(updates)} widgets")
            self._commit(widgets)

    def edit(self, widget_id: str, **changes) -> Widget:
        self._commit(edit_widget(self._widgets, widget_id, **changes))
        logger.info(f"Updated widget settings (ID: {widget_id})")
        return self.get(widget_id)

    def remove(self, widget_id: str) -> None:
        self._commit(remove_widget(self._widgets, widget_id))
        self.refreshing.discard(widget_id)
        logger.info(f"Removed widget (ID: {widget_id})")

    def set_filters(self, filters: FilterState) -> None:
        if filters == self._filters:
            return
        self._filters = filters
        self._notify()

    def clear_filters(self) -> None:
        self.set_filters(FilterState())

    async def refresh(
        self,
        widget_id: str,
        client: Optional[ReportingClient] = None,
        latency: float = 1.0,
    ) -> Widget:
        """Re-run a widget's query and replace its data.

        Without a client or a stored payload the refresh is simulated: it
        waits ``latency`` seconds and keeps the current data. A refresh that
        is already running for the widget is not started twice.
        """
        widget = self.get(widget_id)
        if widget_id in self.refreshing:
            return widget

        self.refreshing.add(widget_id)
        self._notify()
        try:
            if client is not None and widget.query_payload is not None:
                data = await client.execute_query(widget.query_payload)
            else:
                await asyncio.sleep(latency)
                data = None
            # the widget may have been removed while the query was running
            if data is not None and self._contains(widget_id):
                self._widgets = replace_data(self._widgets, widget_id, data)
                logger.info(f"Refreshed widget data (ID: {widget_id}, {len(data)} points)")
        finally:
            self.refreshing.discard(widget_id)
            self._notify()
        return self.get(widget_id) if self._contains(widget_id) else widget

    def _contains(self, widget_id: str) -> bool:
        return any(w.id == widget_id for w in self._widgets)

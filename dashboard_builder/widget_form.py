"""State and behaviour of the add-widget form, independent of the UI"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from dashboard_builder.errors import DashboardError, describe_failure
from dashboard_builder.models import ChartType, Relation, Widget, WidgetDraft, WidgetLayout
from dashboard_builder.query_builder import (
    FilterPredicate,
    QuerySelection,
    build_payload,
    validate_selection,
)
from dashboard_builder.reporting_client import ReportingClient
from dashboard_builder.store import DashboardStore

logger = logging.getLogger(__name__)

NEW_WIDGET_WIDTH = 6
NEW_WIDGET_HEIGHT = 4


class WidgetForm:
    """Selections, dependent option lists and submission for a new widget.

    Option lists that depend on a selection (fields and relations of the data
    source, fields of the metric source) are fetched in tasks keyed by the
    selection that triggered them. Selecting again cancels the older task, and
    a result whose key no longer matches the current selection is dropped.
    """

    def __init__(
        self,
        client: ReportingClient,
        *,
        require_join_path: bool = True,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.client = client
        self.on_change = on_change
        self.require_join_path = require_join_path
        self.selection = QuerySelection()

        self.tables: List[str] = []
        self.fields: List[str] = []
        self.relations: List[Relation] = []
        self.metric_fields: List[str] = []

        self.error: Optional[str] = None
        self.submitting = False
        self._tasks: Dict[str, asyncio.Task] = {}
        self._keys: Dict[str, str] = {}
        self._inflight: Set[str] = set()

    @property
    def loading(self) -> bool:
        return self.submitting or bool(self._inflight)

    @property
    def filters(self) -> List[FilterPredicate]:
        return list(self.selection.filters)

    @property
    def metric_source_options(self) -> List[str]:
        options = []
        for relation in self.relations:
            if relation.ttable not in options:
                options.append(relation.ttable)
        return options

    @property
    def can_submit(self) -> bool:
        return self.selection.is_valid and not self.loading

    def _update(self, **changes: Any) -> None:
        self.selection = self.selection.model_copy(update=changes)

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    # -- simple selections --------------------------------------------------

    def set_title(self, title: str) -> None:
        self._update(title=title or "")

    def set_chart_type(self, chart_type: ChartType) -> None:
        self._update(chart_type=ChartType(chart_type))

    def set_field(self, field: str) -> None:
        self._update(field=field or "")

    def set_aggregation(self, aggregation: str) -> None:
        self._update(aggregation=aggregation or "")

    def set_metric_field(self, metric_field: str) -> None:
        self._update(metric_field=metric_field or "")

    # -- filter rows ---------------------------------------------------------

    def add_filter(self) -> None:
        self._update(filters=self.filters + [FilterPredicate()])

    def remove_filter(self, index: int) -> None:
        filters = self.filters
        del filters[index]
        self._update(filters=filters)

    def update_filter(self, index: int, key: str, value: str) -> None:
        if key not in ("field", "operator", "value"):
            raise ValueError(f"Unknown filter attribute: {key}")
        filters = self.filters
        filters[index] = filters[index].model_copy(update={key: value or ""})
        self._update(filters=filters)

    # -- dependent fetches -------------------------------------------------

    async def _run_keyed(self, slot: str, key: str, fetch: Callable[[], Awaitable[None]]) -> bool:
        """Run a fetch for a slot, superseding any older fetch of that slot.

        Returns False when the fetch was cancelled or superseded.
        """
        previous = self._tasks.get(slot)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.debug(f"Superseded pending {slot} fetch")

        self._keys[slot] = key
        task = asyncio.ensure_future(fetch())
        self._tasks[slot] = task
        self._inflight.add(slot)
        self._changed()
        try:
            await asyncio.wait({task})
        finally:
            if self._tasks.get(slot) is task:
                self._inflight.discard(slot)
                del self._tasks[slot]
            self._changed()

        if task.cancelled():
            return False
        task.result()
        return self._keys.get(slot) == key

    async def load_tables(self) -> None:
        """Fetch the available data sources"""
        try:
            self.tables = await self.client.list_data_sources()
        except DashboardError as e:
            logger.warning(f"Error fetching tables: {e}")
            self.tables = []

    async def select_data_source(self, data_source: str) -> bool:
        """Select the primary table and reload its fields and relations.

        Returns False when a newer selection superseded this one.
        """
        data_source = data_source or ""
        self._update(data_source=data_source, field="", metric_source="", metric_field="")
        self.metric_fields = []
        self._cancel("metric")
        if not data_source:
            self._cancel("source")
            self.fields, self.relations = [], []
            return True

        async def fetch() -> None:
            fields, relations = await asyncio.gather(
                self._fetch_fields(data_source), self._fetch_relations(data_source)
            )
            if self.selection.data_source != data_source:
                logger.debug(f"Discarding stale schema for {data_source}")
                return
            self.fields, self.relations = fields, relations

        return await self._run_keyed("source", data_source, fetch)

    async def select_metric_source(self, metric_source: str) -> bool:
        """Select the joined table and reload its fields"""
        metric_source = metric_source or ""
        self._update(metric_source=metric_source, metric_field="")
        if not metric_source:
            self._cancel("metric")
            self.metric_fields = []
            return True

        key = f"{self.selection.data_source}/{metric_source}"

        async def fetch() -> None:
            fields = await self._fetch_fields(metric_source)
            if f"{self.selection.data_source}/{self.selection.metric_source}" != key:
                logger.debug(f"Discarding stale metric fields for {metric_source}")
                return
            self.metric_fields = fields

        return await self._run_keyed("metric", key, fetch)

    def _cancel(self, slot: str) -> None:
        task = self._tasks.pop(slot, None)
        self._keys.pop(slot, None)
        self._inflight.discard(slot)
        if task is not None and not task.done():
            task.cancel()

    async def _fetch_fields(self, table: str) -> List[str]:
        try:
            return await self.client.list_fields(table)
        except DashboardError as e:
            logger.warning(f"Error fetching fields for {table}: {e}")
            return []

    async def _fetch_relations(self, table: str) -> List[Relation]:
        try:
            return await self.client.list_relations(table)
        except DashboardError as e:
            logger.warning(f"Error fetching relations for {table}: {e}")
            return []

    # -- submission ----------------------------------------------------------

    async def submit(self, store: DashboardStore) -> Optional[Widget]:
        """Execute the query and add the resulting widget to the store.

        On failure the error message is kept on the form, nothing is added
        and None is returned.
        """
        self.error = None
        self.submitting = True
        self._changed()
        try:
            validate_selection(self.selection)
            payload = build_payload(self.selection, self.relations, require_join_path=self.require_join_path)
            data = await self.client.execute_query(payload)
        except DashboardError as e:
            logger.error(f"Failed to create widget: {e}")
            self.error = describe_failure(e)
            return None
        finally:
            self.submitting = False
            self._changed()

        draft = WidgetDraft(
            type=self.selection.chart_type,
            title=self.selection.title.strip(),
            data_keys=["value"],
            data=data,
            layout=WidgetLayout(x=0, y=store.next_row(), w=NEW_WIDGET_WIDTH, h=NEW_WIDGET_HEIGHT),
            query_payload=payload,
        )
        return store.add(draft)

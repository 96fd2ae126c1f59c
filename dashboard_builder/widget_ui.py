"""UI for building and arranging the dashboard"""

import logging
from typing import Optional

from nicegui import ui

from dashboard_builder.chart_renderer import render_chart
from dashboard_builder.config import Settings
from dashboard_builder.errors import DashboardError, describe_failure
from dashboard_builder.filters import normalize_filters
from dashboard_builder.layout import from_grid_layout, grid_css, moved
from dashboard_builder.models import CHART_TYPE_LABELS, ChartType, Widget
from dashboard_builder.query_builder import AGGREGATIONS, FILTER_OPERATORS
from dashboard_builder.reporting_client import ReportingClient
from dashboard_builder.store import DashboardStore
from dashboard_builder.widget_form import WidgetForm

logger = logging.getLogger(__name__)

CHART_TYPE_OPTIONS = {t.value: label for t, label in CHART_TYPE_LABELS.items()}


class DashboardPage:
    """UI component for one dashboard page session"""

    def __init__(self, store: DashboardStore, client: ReportingClient, settings: Settings):
        self.store = store
        self.client = client
        self.settings = settings
        self.edit_mode = False
        self.container = None
        self.widget_container = None
        self.active_badge = None
        self.store.subscribe(self.refresh_widgets)

    def render_dashboard(self):
        """Render the header and the widget grid"""
        with ui.column().classes("w-full max-w-7xl mx-auto p-6") as self.container:
            with ui.row().classes("w-full justify-between items-center mb-6"):
                ui.label("Dashboard Builder").classes("text-2xl font-bold")

                with ui.row().classes("gap-2 items-center"):
                    ui.button(
                        "Edit Mode" if not self.edit_mode else "View Mode",
                        icon="edit" if not self.edit_mode else "visibility",
                        on_click=self.toggle_edit_mode,
                    ).props("outline")

                    with ui.button("Filter", icon="filter_list", on_click=self.show_filter_dialog).props("outline"):
                        self.active_badge = ui.badge("Active", color="blue-2", text_color="blue-9").props("floating")

                    ui.button("Add Widget", icon="add", on_click=self.show_add_widget_dialog).props("color=primary")

            with ui.column().classes("w-full") as self.widget_container:
                pass

            self.refresh_widgets()

    def _notify(self, message: str, type: str = "info"):
        with self.container:
            ui.notify(message, type=type)

    def refresh_widgets(self):
        """Rebuild the widget grid from the current store snapshot"""
        if self.widget_container is None:
            return
        if self.active_badge is not None:
            self.active_badge.set_visibility(self.store.filters.is_active)

        self.widget_container.clear()
        with self.widget_container:
            visible = self.store.visible()

            if not visible:
                self._render_empty_state()
                return

            # one stylesheet per render; clearing the container drops the old one
            ui.html(f"<style>{grid_css(visible)}</style>", sanitize=False)
            with ui.element("div").classes("dashboard-grid w-full"):
                for widget in visible:
                    self._render_tile(widget)

    def _render_empty_state(self):
        with ui.card().classes("w-full p-8 items-center text-center"):
            ui.icon("dashboard", size="4rem").classes("text-gray-400")
            if len(self.store) == 0:
                ui.label("No widgets yet").classes("text-xl text-gray-600 mt-4")
                ui.label("Get started by adding a new widget").classes("text-gray-500")
                ui.button("Add Widget", icon="add", on_click=self.show_add_widget_dialog).props("color=primary")
            else:
                ui.label("No matching widgets").classes("text-xl text-gray-600 mt-4")
                ui.label("Try adjusting your filters").classes("text-gray-500")
                ui.button("Clear Filters", on_click=self.store.clear_filters).props("color=primary")

    def _render_tile(self, widget: Widget):
        refreshing = widget.id in self.store.refreshing

        with ui.card().classes(f"tile-{widget.id} p-4 overflow-hidden"):
            with ui.row().classes("w-full justify-between items-center no-wrap"):
                ui.label(widget.display_title).classes("text-lg font-semibold truncate")
                with ui.row().classes("gap-1 no-wrap"):
                    refresh = ui.button(icon="refresh", on_click=lambda w=widget: self.refresh_widget(w)).props("flat dense")
                    if refreshing:
                        refresh.disable()
                        refresh.props("loading")
                    ui.button("Edit", on_click=lambda w=widget: self.edit_widget(w)).props("flat dense color=primary")

            if self.edit_mode:
                self._render_layout_controls(widget)

            with ui.element("div").classes("w-full h-full"):
                render_chart(widget)

    def _render_layout_controls(self, widget: Widget):
        """Move/resize buttons feeding layout changes back through the reconciler"""
        controls = [
            ("west", dict(dx=-1)),
            ("east", dict(dx=1)),
            ("north", dict(dy=-1)),
            ("south", dict(dy=1)),
            ("remove", dict(dw=-1)),
            ("add", dict(dw=1)),
            ("unfold_less", dict(dh=-1)),
            ("unfold_more", dict(dh=1)),
        ]
        with ui.row().classes("gap-0"):
            for icon, delta in controls:
                ui.button(
                    icon=icon,
                    on_click=lambda w=widget, d=delta: from_grid_layout(self.store, [moved(w, **d)]),
                ).props("flat dense size=sm")
            ui.button(icon="delete", on_click=lambda w=widget: self.delete_widget(w)).props("flat dense size=sm color=negative")

    def toggle_edit_mode(self):
        """Toggle between edit and view mode"""
        self.edit_mode = not self.edit_mode
        ui.notify(f"{'Edit' if self.edit_mode else 'View'} mode activated")
        self.refresh_widgets()

    async def refresh_widget(self, widget: Widget):
        """Re-run a widget's query"""
        try:
            await self.store.refresh(widget.id, self.client, latency=self.settings.refresh_latency)
        except DashboardError as e:
            logger.error(f"Failed to refresh widget {widget.id}: {e}")
            self._notify(describe_failure(e, prefix="Failed to refresh widget."), type="negative")

    def delete_widget(self, widget: Widget):
        """Delete a widget with confirmation"""

        def confirm_delete():
            self.store.remove(widget.id)
            confirm_dialog.close()
            self._notify(f"Widget '{widget.display_title}' deleted", type="positive")

        with self.container, ui.dialog() as confirm_dialog, ui.card():
            ui.label(f"Delete '{widget.display_title}'?").classes("text-lg")
            ui.label("This action cannot be undone.").classes("text-gray-600")

            with ui.row().classes("w-full justify-end gap-2 mt-4"):
                ui.button("Cancel", on_click=confirm_dialog.close).props("flat")
                ui.button("Delete", on_click=confirm_delete).props("color=negative")

        confirm_dialog.open()

    def edit_widget(self, widget: Widget):
        """Edit title, chart type and data keys of a widget"""
        with self.container, ui.dialog() as dialog, ui.card().classes("w-96"):
            ui.label("Edit Chart").classes("text-xl font-bold mb-4")

            title_input = ui.input("Chart Title", value=widget.title).classes("w-full")
            type_select = ui.select(CHART_TYPE_OPTIONS, label="Chart Type", value=widget.type.value).classes("w-full")
            keys_input = ui.input(
                "Data Keys", value=", ".join(widget.data_keys), placeholder="Enter keys separated by commas"
            ).classes("w-full")

            def save():
                self.store.edit(
                    widget.id,
                    title=title_input.value or "",
                    type=ChartType(type_select.value),
                    data_keys=(keys_input.value or "").split(","),
                )
                dialog.close()
                self._notify(f"Widget '{title_input.value or widget.display_title}' updated", type="positive")

            with ui.row().classes("w-full justify-end gap-2 mt-4"):
                ui.button("Cancel", on_click=dialog.close).props("flat")
                ui.button("Save Changes", on_click=save).props("color=primary")

        dialog.open()

    def show_filter_dialog(self):
        """Show the widget filter panel; changes apply immediately"""
        current = self.store.filters
        raw = {
            "title": current.title,
            "type": current.type.value if current.type else None,
            "min_value": current.min_value,
            "max_value": current.max_value,
            "date_range": {
                "start": current.date_range.start.isoformat() if current.date_range.start else "",
                "end": current.date_range.end.isoformat() if current.date_range.end else "",
            },
            "data_sources": list(current.data_sources),
        }
        sources = sorted({e for w in self.store.widgets if w.query_payload for e in w.query_payload.entities})

        def apply(key: str, value, sub: Optional[str] = None):
            if sub:
                raw[key][sub] = value or ""
            else:
                raw[key] = value
            self.store.set_filters(normalize_filters(raw))

        with self.container, ui.dialog() as dialog, ui.card().classes("w-96"):
            with ui.row().classes("w-full justify-between items-center mb-4"):
                ui.label("Filter Widgets").classes("text-xl font-bold")
                ui.button(icon="close", on_click=dialog.close).props("flat dense")

            title_input = ui.input("Title", value=raw["title"], on_change=lambda e: apply("title", e.value)).classes("w-full")
            type_select = ui.select(
                {"": "All types", **CHART_TYPE_OPTIONS},
                label="Chart Type",
                value=raw["type"] or "",
                on_change=lambda e: apply("type", e.value),
            ).classes("w-full")

            with ui.row().classes("w-full no-wrap gap-2"):
                min_input = ui.number("Min value", value=raw["min_value"], on_change=lambda e: apply("min_value", e.value)).classes("w-1/2")
                max_input = ui.number("Max value", value=raw["max_value"], on_change=lambda e: apply("max_value", e.value)).classes("w-1/2")

            ui.label("Date Range").classes("text-sm font-medium text-gray-700 mt-2")
            with ui.row().classes("w-full no-wrap gap-2"):
                start_input = ui.input(
                    value=raw["date_range"]["start"], on_change=lambda e: apply("date_range", e.value, "start")
                ).props("type=date").classes("w-1/2")
                end_input = ui.input(
                    value=raw["date_range"]["end"], on_change=lambda e: apply("date_range", e.value, "end")
                ).props("type=date").classes("w-1/2")

            sources_select = ui.select(
                sources,
                label="Data Sources",
                multiple=True,
                value=raw["data_sources"],
                on_change=lambda e: apply("data_sources", e.value),
            ).classes("w-full").props("use-chips")

            def clear():
                self.store.clear_filters()
                for element in (title_input, start_input, end_input):
                    element.set_value("")
                type_select.set_value("")
                min_input.set_value(None)
                max_input.set_value(None)
                sources_select.set_value([])

            ui.button("Clear Filters", on_click=clear).classes("w-full mt-4").props("flat color=primary")

        dialog.open()

    async def show_add_widget_dialog(self):
        """Show dialog for creating a widget from a reporting query"""
        form = WidgetForm(self.client, require_join_path=self.settings.require_join_path, on_change=lambda: sync())

        with self.container, ui.dialog() as dialog, ui.card().classes("w-[28rem] max-h-[80vh] overflow-y-auto"):
            with ui.row().classes("w-full justify-between items-center mb-4"):
                ui.label("Create New Widget").classes("text-xl font-bold")
                close_button = ui.button(icon="close", on_click=dialog.close).props("flat dense")

            error_label = ui.label().classes("w-full p-3 bg-red-100 border border-red-400 text-red-700 rounded")
            spinner = ui.spinner(size="lg").classes("self-center")

            ui.input(
                "Widget Title", placeholder="Enter widget title", on_change=lambda e: (form.set_title(e.value), sync())
            ).classes("w-full")
            ui.select(
                CHART_TYPE_OPTIONS,
                label="Chart Type",
                value=ChartType.LINE.value,
                on_change=lambda e: (form.set_chart_type(e.value), sync()),
            ).classes("w-full")

            source_select = ui.select([], label="Data Source", on_change=lambda e: on_source(e.value)).classes("w-full")
            field_select = ui.select([], label="Field", on_change=lambda e: (form.set_field(e.value), sync())).classes("w-full")
            ui.select(
                AGGREGATIONS, label="Aggregation", on_change=lambda e: (form.set_aggregation(e.value), sync())
            ).classes("w-full")
            metric_select = ui.select(
                [], label="Metric Source", clearable=True, on_change=lambda e: on_metric(e.value)
            ).classes("w-full")
            metric_field_select = ui.select(
                [], label="Metric Field", on_change=lambda e: (form.set_metric_field(e.value), sync())
            ).classes("w-full")

            filters_container = ui.column().classes("w-full gap-2")
            ui.button("Add Filter", icon="add", on_click=lambda: (form.add_filter(), render_filters(), sync())).props("outline")

            with ui.row().classes("w-full justify-end mt-4"):
                submit_button = ui.button("Create Widget", on_click=lambda: on_submit()).props("color=primary")

        def sync():
            busy = form.loading
            spinner.set_visibility(busy)
            error_label.set_text(form.error or "")
            error_label.set_visibility(bool(form.error))
            source_select.set_enabled(not busy)
            field_select.set_enabled(bool(form.selection.data_source) and not busy)
            metric_select.set_enabled(bool(form.selection.data_source) and not busy)
            metric_field_select.set_visibility(bool(form.selection.metric_source))
            submit_button.set_text("Creating..." if form.submitting else "Create Widget")
            submit_button.set_enabled(form.can_submit)
            close_button.set_enabled(not form.submitting)

        def render_filters():
            filters_container.clear()
            with filters_container:
                for index, predicate in enumerate(form.filters):
                    with ui.card().classes("w-full p-2"):
                        with ui.row().classes("w-full justify-end"):
                            ui.button(
                                icon="close", on_click=lambda i=index: (form.remove_filter(i), render_filters(), sync())
                            ).props("flat dense color=negative")
                        ui.select(
                            form.fields,
                            label="Filter Field",
                            value=predicate.field or None,
                            on_change=lambda e, i=index: form.update_filter(i, "field", e.value),
                        ).classes("w-full")
                        ui.select(
                            FILTER_OPERATORS,
                            label="Filter Operator",
                            value=predicate.operator,
                            on_change=lambda e, i=index: form.update_filter(i, "operator", e.value),
                        ).classes("w-full")
                        ui.input(
                            "Filter Value",
                            value=predicate.value,
                            placeholder="Enter filter value",
                            on_change=lambda e, i=index: form.update_filter(i, "value", e.value),
                        ).classes("w-full")

        async def on_source(value):
            if not await form.select_data_source(value or ""):
                return
            field_select.set_options(form.fields, value=None)
            metric_select.set_options(form.metric_source_options, value=None)
            render_filters()
            sync()

        async def on_metric(value):
            if (value or "") == form.selection.metric_source:
                return
            if not await form.select_metric_source(value or ""):
                return
            metric_field_select.set_options(form.metric_fields, value=None)
            sync()

        async def on_submit():
            widget = await form.submit(self.store)
            if widget is not None:
                dialog.close()
                self._notify(f"Widget '{widget.display_title}' added successfully", type="positive")

        dialog.open()
        sync()
        await form.load_tables()
        source_select.set_options(form.tables)
        sync()

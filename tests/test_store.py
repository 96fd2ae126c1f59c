import httpx
import pytest

from dashboard_builder.errors import ReportingServerError, WidgetNotFoundError
from dashboard_builder.filters import FilterState, visible_widgets
from dashboard_builder.models import ChartType, QueryPayload, WidgetDraft, WidgetLayout
from dashboard_builder.store import DashboardStore, add_widget, apply_layout, edit_widget, remove_widget
from tests.conftest import make_client, query_result

pytestmark = pytest.mark.anyio


def draft(title="Chart", **changes) -> WidgetDraft:
    return WidgetDraft(title=title, **changes)


def test_added_widgets_get_unique_ids():
    store = DashboardStore()
    first = store.add(draft())
    second = store.add(draft())
    assert first.id != second.id
    assert [w.id for w in store.widgets] == [first.id, second.id]


def test_add_applies_default_and_minimum_size():
    widgets = add_widget((), draft())
    assert widgets[0].layout == WidgetLayout(x=0, y=0, w=3, h=3)

    widgets = add_widget((), draft(layout=WidgetLayout(x=2, y=1, w=1, h=2)))
    assert widgets[0].layout == WidgetLayout(x=2, y=1, w=3, h=3)


def test_add_rejects_duplicate_id():
    widgets = add_widget((), draft(), widget_id="widget-1")
    with pytest.raises(ValueError):
        add_widget(widgets, draft(), widget_id="widget-1")


def test_apply_layout_ignores_unknown_ids_and_is_idempotent():
    widgets = add_widget((), draft(), widget_id="a")
    updates = {"a": WidgetLayout(x=4, y=2, w=5, h=4), "ghost": WidgetLayout()}
    once = apply_layout(widgets, updates)
    twice = apply_layout(once, updates)
    assert once == twice
    assert once[0].layout == WidgetLayout(x=4, y=2, w=5, h=4)
    assert len(once) == 1


def test_apply_layout_floors_to_minimum_size():
    widgets = add_widget((), draft(), widget_id="a")
    widgets = apply_layout(widgets, {"a": WidgetLayout(x=0, y=0, w=1, h=1)})
    assert (widgets[0].layout.w, widgets[0].layout.h) == (3, 3)


def test_edit_keeps_data_and_layout():
    widgets = add_widget((), draft(data=[{"name": "a", "value": 1}]), widget_id="a")
    edited = edit_widget(widgets, "a", title="Renamed", type=ChartType.PIE, data_keys=[" sales ", ""])
    assert edited[0].title == "Renamed"
    assert edited[0].type == ChartType.PIE
    assert edited[0].data_keys == ["sales"]
    assert edited[0].data == widgets[0].data
    assert edited[0].layout == widgets[0].layout
    assert edited[0].id == "a"


def test_edit_with_empty_keys_falls_back_to_value():
    widgets = add_widget((), draft(data_keys=["sales"]), widget_id="a")
    assert edit_widget(widgets, "a", data_keys=[])[0].data_keys == ["value"]


def test_edit_unknown_widget():
    with pytest.raises(WidgetNotFoundError) as exc_info:
        edit_widget((), "nope", title="x")
    assert str(exc_info.value) == "Widget nope not found"


def test_remove_keeps_order_of_the_rest():
    widgets = ()
    for widget_id in "abc":
        widgets = add_widget(widgets, draft(), widget_id=widget_id)
    assert [w.id for w in remove_widget(widgets, "b")] == ["a", "c"]


def test_mutations_replace_the_snapshot_and_notify():
    store = DashboardStore()
    calls = []
    store.subscribe(lambda: calls.append(store.widgets))

    widget = store.add(draft())
    before = store.widgets
    store.edit(widget.id, title="New")

    assert len(calls) == 2
    assert store.widgets is not before
    assert before[0].title == "Chart"
    assert store.get(widget.id).title == "New"


def test_unchanged_layout_does_not_notify():
    store = DashboardStore()
    widget = store.add(draft())
    calls = []
    store.subscribe(lambda: calls.append(1))
    store.apply_layout({widget.id: widget.layout})
    assert calls == []


def test_next_row_is_below_every_tile():
    store = DashboardStore()
    assert store.next_row() == 0
    store.add(draft(layout=WidgetLayout(x=0, y=2, w=3, h=4)))
    store.add(draft(layout=WidgetLayout(x=3, y=0, w=3, h=3)))
    assert store.next_row() == 6


async def test_simulated_refresh_keeps_data():
    store = DashboardStore()
    widget = store.add(draft(data=[{"name": "a", "value": 1}]))
    states = []
    store.subscribe(lambda: states.append(widget.id in store.refreshing))

    refreshed = await store.refresh(widget.id, latency=0)

    assert refreshed.data == widget.data
    assert states == [True, False]
    assert not store.refreshing


async def test_refresh_reexecutes_stored_query():
    store = DashboardStore()
    widget = store.add(draft(query_payload=QueryPayload(entities=["orders"], aggregations=["count(orders.id)"])))

    async with make_client(lambda request: query_result({"Mon": 3})) as client:
        refreshed = await store.refresh(widget.id, client)

    assert refreshed.data == [{"name": "Mon", "value": 3}]
    assert store.get(widget.id).data == [{"name": "Mon", "value": 3}]


async def test_failed_refresh_clears_loading_state():
    store = DashboardStore()
    widget = store.add(draft(data=[{"name": "a", "value": 1}], query_payload=QueryPayload(entities=["orders"])))

    async with make_client(lambda request: httpx.Response(502, json={})) as client:
        with pytest.raises(ReportingServerError):
            await store.refresh(widget.id, client)

    assert not store.refreshing
    assert store.get(widget.id).data == [{"name": "a", "value": 1}]


def test_blank_titles_become_untitled():
    store = DashboardStore()
    added = store.add(draft(title="  "))
    assert added.title == "Untitled Chart"

    renamed = store.edit(added.id, title="Revenue")
    assert store.edit(renamed.id, title="").title == "Untitled Chart"
    assert [w.id for w in visible_widgets(store.widgets, FilterState(title="untitled"))] == [added.id]

from datetime import date, datetime, timezone

import pytest

from dashboard_builder.filters import (
    DateRange,
    FilterState,
    has_value_in_range,
    matches,
    normalize_filters,
    visible_widgets,
)
from dashboard_builder.models import ChartType, QueryPayload, Widget, WidgetDraft
from dashboard_builder.store import DashboardStore


def widget(widget_id="w", **changes) -> Widget:
    return Widget(id=widget_id, type=changes.pop("type", ChartType.LINE), **changes)


def points(*values):
    return [{"name": str(i), "value": v} for i, v in enumerate(values)]


def test_value_range_is_existential():
    w = widget(data=points(5, 50))
    assert has_value_in_range(w, 40, 60)
    assert not has_value_in_range(widget(data=points(5, 10)), 40, 60)


def test_value_range_reads_point_value_not_data_keys():
    w = widget(data=[{"name": "Q1", "value": 50, "sales": 1}], data_keys=["sales"])
    assert has_value_in_range(w, 40, 60)
    assert not has_value_in_range(widget(data=[{"name": "Q1", "sales": 50}]), 40, 60)


def test_editing_data_keys_keeps_value_filter_result():
    store = DashboardStore()
    added = store.add(WidgetDraft(title="Sales", data=[{"name": "Jan", "value": 50}]))
    store.set_filters(FilterState(min_value=40, max_value=60))
    assert [w.id for w in store.visible()] == [added.id]

    store.edit(added.id, data_keys=["sales"])

    assert [w.id for w in store.visible()] == [added.id]


def test_open_value_bounds():
    w = widget(data=points(100))
    assert has_value_in_range(w, None, None)
    assert has_value_in_range(w, 50, None)
    assert not has_value_in_range(w, None, 50)


def test_array_cells_use_first_element():
    assert has_value_in_range(widget(data=[{"name": "a", "value": [45, 1]}]), 40, 60)


def test_widget_without_data_fails_value_range():
    assert not matches(widget(), FilterState(min_value=0))


def test_title_filter_is_case_insensitive_substring():
    assert matches(widget(title="Monthly Revenue"), FilterState(title="revenue"))
    assert not matches(widget(title="Monthly Revenue"), FilterState(title="churn"))


def test_type_filter():
    assert matches(widget(type=ChartType.PIE), FilterState(type=ChartType.PIE))
    assert not matches(widget(type=ChartType.BAR), FilterState(type=ChartType.PIE))


def test_date_range_matches_creation_day_inclusively():
    created = datetime(2024, 3, 15, 23, 30, tzinfo=timezone.utc)
    w = widget(created_at=created)
    assert matches(w, FilterState(date_range=DateRange(start=date(2024, 3, 15), end=date(2024, 3, 15))))
    assert not matches(w, FilterState(date_range=DateRange(start=date(2024, 3, 16))))


def test_data_source_filter_uses_query_entities():
    w = widget(query_payload=QueryPayload(entities=["orders", "customers"]))
    assert matches(w, FilterState(data_sources=["customers"]))
    assert not matches(w, FilterState(data_sources=["products"]))
    assert not matches(widget(), FilterState(data_sources=["orders"]))


def test_filters_compose_regardless_of_order():
    widgets = [
        widget("a", title="Sales", type=ChartType.BAR, data=points(45)),
        widget("b", title="Sales", type=ChartType.LINE, data=points(45)),
        widget("c", title="Costs", type=ChartType.BAR, data=points(45)),
        widget("d", title="Sales", type=ChartType.BAR, data=points(5)),
    ]
    by_title = visible_widgets(widgets, FilterState(title="sales"))
    then_type = visible_widgets(by_title, FilterState(type=ChartType.BAR, min_value=40, max_value=60))
    by_type = visible_widgets(widgets, FilterState(type=ChartType.BAR, min_value=40, max_value=60))
    then_title = visible_widgets(by_type, FilterState(title="sales"))
    combined = visible_widgets(widgets, FilterState(title="sales", type=ChartType.BAR, min_value=40, max_value=60))

    assert [w.id for w in then_type] == [w.id for w in then_title] == [w.id for w in combined] == ["a"]


def test_empty_filters_show_everything_in_order():
    widgets = [widget("a"), widget("b")]
    assert not FilterState().is_active
    assert visible_widgets(widgets, FilterState()) == widgets


def test_normalize_form_values():
    state = normalize_filters({
        "title": "  rev ",
        "type": "bar",
        "min_value": "",
        "max_value": "60",
        "date_range": {"start": "2024-01-01", "end": ""},
        "data_sources": "orders, customers",
    })
    assert state.title == "rev"
    assert state.type == ChartType.BAR
    assert state.min_value is None
    assert state.max_value == 60.0
    assert state.date_range == DateRange(start=date(2024, 1, 1))
    assert state.data_sources == ["orders", "customers"]
    assert state.is_active


@pytest.mark.parametrize("raw", [{}, {"type": "radar", "min_value": "abc", "date_range": {"start": "soon"}}])
def test_normalize_discards_unusable_values(raw):
    assert normalize_filters(raw) == FilterState()

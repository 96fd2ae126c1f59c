"""Page-level tests driven through the NiceGUI user simulation"""
from typing import Optional

import pytest
from nicegui import ui
from nicegui.testing import User

from dashboard_builder.config import Settings
from dashboard_builder.filters import FilterState
from dashboard_builder.models import ChartType, Widget
from dashboard_builder.store import DashboardStore
from dashboard_builder.widget_ui import DashboardPage
from tests.conftest import make_client, schema_routes

pytestmark = pytest.mark.asyncio

REVENUE = Widget(id="widget-revenue", type=ChartType.BAR, title="Revenue", data=[{"name": "Jan", "value": 10}])


def seeded_page(path: str, filters: Optional[FilterState] = None):
    """Register a dashboard page that starts with one widget"""

    @ui.page(path)
    def page():
        client = make_client(schema_routes)
        ui.context.client.on_disconnect(client.aclose)
        DashboardPage(DashboardStore(widgets=(REVENUE,), filters=filters), client, Settings()).render_dashboard()


async def test_empty_dashboard(user: User):
    await user.open("/")
    await user.should_see("Dashboard Builder")
    await user.should_see("No widgets yet")
    await user.should_see("Get started by adding a new widget")


async def test_clear_filters_restores_hidden_widgets(user: User):
    seeded_page("/filtered", FilterState(title="churn"))
    await user.open("/filtered")
    await user.should_see("No matching widgets")

    user.find("Clear Filters").click()

    await user.should_see("Revenue")
    await user.should_not_see("No matching widgets")


async def test_grid_keeps_a_single_stylesheet(user: User):
    seeded_page("/styled")
    await user.open("/styled")
    await user.should_see("Revenue")

    user.find("Edit Mode").click()
    user.find("Edit Mode").click()

    assert len(user.find(kind=ui.html).elements) == 1


async def test_add_widget_dialog_opens(user: User):
    seeded_page("/seeded")
    await user.open("/seeded")
    await user.should_see("Revenue")

    user.find("Add Widget").click()

    await user.should_see("Create New Widget")


async def test_filter_dialog_opens(user: User):
    seeded_page("/seeded-filter")
    await user.open("/seeded-filter")

    user.find("Filter").click()

    await user.should_see("Filter Widgets")


async def test_health_endpoint(user: User):
    await user.open("/")
    response = await user.http_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["service"] == "dashboard-builder"
    assert response.headers["X-Content-Type-Options"] == "nosniff"

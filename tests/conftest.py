import json
from typing import Any, Callable, Dict, Optional

import httpx
import pytest

from dashboard_builder.reporting_client import ReportingClient

BASE_URL = "http://reports.test/api/reports"

FIELDS = [
    {"entityName": "orders", "columnName": "id"},
    {"entityName": "orders", "columnName": "amount"},
    {"entityName": "orders", "columnName": "status"},
    {"entityName": "customers", "columnName": "id"},
    {"entityName": "customers", "columnName": "region"},
]

RELATIONS = {
    "orders": [
        {
            "id": 1,
            "relationshipType": "many-to-one",
            "stable": "orders",
            "scolumn": "customer_id",
            "ttable": "customers",
            "tcolumn": "id",
        }
    ],
}


@pytest.fixture
def anyio_backend():
    return "asyncio"


def schema_routes(request: httpx.Request) -> Optional[httpx.Response]:
    """Answer the schema endpoints from the fixture tables above"""
    path = request.url.path.removeprefix("/api/reports")
    if path == "/fields":
        return httpx.Response(200, json=FIELDS)
    if path.startswith("/fields/"):
        table = path.split("/")[-1]
        return httpx.Response(200, json=[f for f in FIELDS if f["entityName"] == table])
    if path.startswith("/relations/"):
        table = path.split("/")[-1]
        return httpx.Response(200, json=RELATIONS.get(table, []))
    return None


def make_client(handler: Callable[[httpx.Request], Any]) -> ReportingClient:
    return ReportingClient(BASE_URL, tunnel_token="69420", transport=httpx.MockTransport(handler))


def query_result(data: Dict[str, Any]) -> httpx.Response:
    return httpx.Response(200, json={"message": {"data": data}})


def request_json(request: httpx.Request) -> Dict[str, Any]:
    return json.loads(request.content)

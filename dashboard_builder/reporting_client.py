"""Async client for the remote reporting API"""
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from dashboard_builder.config import Settings
from dashboard_builder.errors import (
    MalformedResponseError,
    ReportingServerError,
    ReportingUnavailableError,
)
from dashboard_builder.models import DataPoint, QueryPayload, Relation, scalar

logger = logging.getLogger(__name__)

TUNNEL_HEADER = "ngrok-skip-browser-warning"
QUERY_PATH = "/query/new/bar"


def flatten_result(body: Any) -> List[DataPoint]:
    """Turn `{"message": {"data": {label: value}}}` into ordered name/value points"""
    message = body.get("message") if isinstance(body, dict) else None
    data = message.get("data") if isinstance(message, dict) else None
    if not isinstance(data, dict):
        raise MalformedResponseError()
    return [{"name": str(label), "value": scalar(value)} for label, value in data.items()]


def _server_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if isinstance(body.get(key), str):
                return body[key]
    return ""


class ReportingClient:
    """Reads schema metadata from the reporting API and executes queries"""

    def __init__(
        self,
        base_url: str,
        *,
        tunnel_token: str = "69420",
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={TUNNEL_HEADER: tunnel_token, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ReportingClient":
        return cls(
            settings.reporting_base_url,
            tunnel_token=settings.tunnel_token,
            timeout=settings.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ReportingClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        """Send a request and decode the JSON body, mapping transport failures"""
        try:
            response = await self._client.request(method, path, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise ReportingServerError(status, _server_message(e.response)) from e
        except httpx.RequestError as e:
            raise ReportingUnavailableError(f"{method} {path}: {e.__class__.__name__}") from e

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError("Response is not valid JSON") from e

    async def list_data_sources(self) -> List[str]:
        """Distinct table names known to the reporting service"""
        rows = await self._request("GET", "/fields")
        tables: List[str] = []
        for row in rows or []:
            name = row.get("entityName") if isinstance(row, dict) else None
            if name and name not in tables:
                tables.append(name)
        logger.info(f"Found {len(tables)} data sources")
        return tables

    async def list_fields(self, table: str) -> List[str]:
        """Column names of a table"""
        rows = await self._request("GET", f"/fields/{table}")
        return [row["columnName"] for row in rows or [] if isinstance(row, dict) and row.get("columnName")]

    async def list_relations(self, table: str) -> List[Relation]:
        """Relations reachable from a table"""
        rows = await self._request("GET", f"/relations/{table}")
        relations = []
        for row in rows or []:
            try:
                relations.append(Relation.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed relation for {table}: {e.error_count()} errors")
        return relations

    async def execute_query(self, payload: QueryPayload) -> List[DataPoint]:
        """Run a query and return its result as name/value points"""
        logger.info(f"Executing query {payload.model_dump()}")
        body = await self._request("POST", QUERY_PATH, json=payload.model_dump())
        points = flatten_result(body)
        logger.info(f"Query returned {len(points)} points")
        return points

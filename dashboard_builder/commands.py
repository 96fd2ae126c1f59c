"""Console entry points"""
import json
import sys
from typing import List, Optional

import anyio
from fire import Fire

from dashboard_builder.config import Settings
from dashboard_builder.errors import DashboardError, describe_failure
from dashboard_builder.log import configure_logging
from dashboard_builder.query_builder import (
    FilterPredicate,
    QuerySelection,
    build_payload,
    validate_selection,
)
from dashboard_builder.reporting_client import ReportingClient


def parse_filter(expression: str) -> FilterPredicate:
    """Parse `field operator value` (value may be quoted) into a filter row"""
    for operator in ("!=", "=", ">", "<"):
        field, sep, value = expression.partition(f" {operator} ")
        if sep:
            return FilterPredicate(field=field.strip(), operator=operator, value=value.strip().strip("'\""))
    raise ValueError(f"Cannot parse filter: {expression!r}")


def serve():
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    from dashboard_builder.startup import run

    run(settings)


def schema():
    Fire(_schema)


def _schema(table: Optional[str] = None):
    """Print data sources, or the fields and relations of one table"""
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    async def fetch():
        async with ReportingClient.from_settings(settings) as client:
            if table is None:
                return {"data_sources": await client.list_data_sources()}
            return {
                "fields": await client.list_fields(table),
                "relations": [r.model_dump(by_alias=True) for r in await client.list_relations(table)],
            }

    try:
        print(json.dumps(anyio.run(fetch), indent=2))
    except DashboardError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def query():
    Fire(_query)


def _query(
    data_source: str,
    field: str,
    aggregation: str,
    metric_source: str = "",
    metric_field: str = "",
    filters: Optional[List[str]] = None,
    dry_run: bool = False,
):
    """Build a query payload from selections, execute it and print the points"""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    if isinstance(filters, str):
        filters = [filters]

    async def execute():
        async with ReportingClient.from_settings(settings) as client:
            relations = await client.list_relations(data_source) if metric_source else []
            selection = QuerySelection(
                title=f"{aggregation}({data_source}.{field})",
                data_source=data_source,
                field=field,
                aggregation=aggregation,
                metric_source=metric_source,
                metric_field=metric_field,
                filters=[parse_filter(f) for f in filters or []],
            )
            validate_selection(selection)
            payload = build_payload(selection, relations, require_join_path=settings.require_join_path)
            print(json.dumps(payload.model_dump(), indent=2))
            if dry_run:
                return None
            return await client.execute_query(payload)

    try:
        points = anyio.run(execute)
    except DashboardError as e:
        print(describe_failure(e, prefix="Query failed."), file=sys.stderr)
        sys.exit(1)
    if points is not None:
        print(json.dumps(points, indent=2))

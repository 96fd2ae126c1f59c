"""Turns add-widget form selections into a reporting query payload"""
import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from dashboard_builder.errors import MissingJoinPathError, QueryValidationError
from dashboard_builder.models import ChartType, QueryPayload, Relation

logger = logging.getLogger(__name__)

AGGREGATIONS = {
    "count": "Count",
    "sum": "Sum",
    "avg": "Average",
    "min": "Minimum",
    "max": "Maximum",
}

FILTER_OPERATORS = {
    "=": "Equals (=)",
    "!=": "Not Equals (!=)",
    ">": "Greater Than (>)",
    "<": "Less Than (<)",
}


class FilterPredicate(BaseModel):
    """One `field operator 'value'` row of the add-widget form"""
    model_config = ConfigDict(frozen=True)

    field: str = ""
    operator: str = "="
    value: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.field) and bool(self.value)

    def render(self) -> str:
        quoted = self.value.replace("'", "''")
        return f"{self.field} {self.operator} '{quoted}'"


class QuerySelection(BaseModel):
    """The user's choices in the add-widget form"""
    model_config = ConfigDict(frozen=True)

    title: str = ""
    chart_type: ChartType = ChartType.LINE
    data_source: str = ""
    field: str = ""
    aggregation: str = ""
    metric_source: str = ""
    metric_field: str = ""
    filters: List[FilterPredicate] = Field(default_factory=list)

    @property
    def has_metric(self) -> bool:
        return bool(self.metric_source) and bool(self.metric_field)

    def missing(self) -> List[str]:
        """Names of required selections that are still empty"""
        required = {
            "title": self.title.strip(),
            "data source": self.data_source,
            "field": self.field,
            "aggregation": self.aggregation,
        }
        return [name for name, value in required.items() if not value]

    @property
    def is_valid(self) -> bool:
        return not self.missing()


def validate_selection(selection: QuerySelection) -> None:
    """Raise QueryValidationError when a required selection is missing"""
    missing = selection.missing()
    if missing:
        raise QueryValidationError(f"Please select a {', '.join(missing)}.")
    if selection.aggregation not in AGGREGATIONS:
        raise QueryValidationError(f"Unknown aggregation: {selection.aggregation}")


def find_join_relation(metric_source: str, relations: Iterable[Relation]) -> Optional[Relation]:
    """First relation whose target table is the metric source"""
    return next((r for r in relations if r.ttable == metric_source), None)


def build_payload(
    selection: QuerySelection,
    relations: Iterable[Relation] = (),
    *,
    require_join_path: bool = True,
) -> QueryPayload:
    """Build the query payload for a selection.

    The single aggregation always targets the primary field. A metric source
    and field add a second entity, one projected field and, when a relation
    to the metric source is known, a join condition. Incomplete filter rows
    are dropped.

    Raises:
        MissingJoinPathError: metric selected, no relation found and
            ``require_join_path`` is set
    """
    entities = [selection.data_source]
    fields: List[str] = []
    join: List[str] = []
    filters = [f.render() for f in selection.filters if f.is_complete]
    aggregations = [f"{selection.aggregation}({selection.data_source}.{selection.field})"]

    if selection.has_metric:
        entities.append(selection.metric_source)
        fields = [f"{selection.metric_source}.{selection.metric_field}"]

        relation = find_join_relation(selection.metric_source, relations)
        if relation is not None:
            join = [relation.join_condition]
        elif require_join_path:
            raise MissingJoinPathError(selection.data_source, selection.metric_source)
        else:
            logger.warning(
                f"No relation from {selection.data_source} to {selection.metric_source}, sending query without join"
            )

    return QueryPayload(entities=entities, fields=fields, join=join, filters=filters, aggregations=aggregations)

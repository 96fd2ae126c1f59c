"""Widget, layout and query models"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

MIN_TILE_WIDTH = 3
MIN_TILE_HEIGHT = 3
DEFAULT_TITLE = "Untitled Chart"
DEFAULT_DATA_KEY = "value"

# A result point: {"name": ..., "value": ...} or richer multi-series rows
DataPoint = Dict[str, Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChartType(str, Enum):
    """Available chart types"""
    LINE = "line"
    BAR = "bar"
    AREA = "area"
    PIE = "pie"


CHART_TYPE_LABELS = {
    ChartType.LINE: "Line Chart",
    ChartType.BAR: "Bar Chart",
    ChartType.AREA: "Area Chart",
    ChartType.PIE: "Pie Chart",
}


class WidgetLayout(BaseModel):
    """Grid placement of a widget, in grid cells"""
    model_config = ConfigDict(frozen=True)

    x: int = Field(default=0, ge=0)
    y: int = Field(default=0, ge=0)
    w: int = Field(default=MIN_TILE_WIDTH, ge=1)
    h: int = Field(default=MIN_TILE_HEIGHT, ge=1)

    def with_minimum_size(self) -> "WidgetLayout":
        """Return this layout grown to the minimum tile size"""
        if self.w >= MIN_TILE_WIDTH and self.h >= MIN_TILE_HEIGHT:
            return self
        return self.model_copy(update={"w": max(self.w, MIN_TILE_WIDTH), "h": max(self.h, MIN_TILE_HEIGHT)})

    @property
    def bottom(self) -> int:
        return self.y + self.h


class QueryPayload(BaseModel):
    """Structured request sent to the reporting service"""
    model_config = ConfigDict(frozen=True)

    entities: List[str] = Field(default_factory=list)
    fields: List[str] = Field(default_factory=list)
    join: List[str] = Field(default_factory=list)
    filters: List[str] = Field(default_factory=list)
    aggregations: List[str] = Field(default_factory=list)


class Relation(BaseModel):
    """A join edge from a source table to a target (metric source) table"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: Optional[int | str] = None
    relationship_type: str = Field(default="", alias="relationshipType")
    stable: str
    scolumn: str
    ttable: str
    tcolumn: str

    @property
    def join_condition(self) -> str:
        return f"{self.ttable}.{self.tcolumn} = {self.stable}.{self.scolumn}"


class WidgetDraft(BaseModel):
    """A widget that has not been added to the store yet"""
    model_config = ConfigDict(frozen=True)

    type: ChartType = ChartType.LINE
    title: str = DEFAULT_TITLE
    data_keys: List[str] = Field(default_factory=lambda: [DEFAULT_DATA_KEY])
    data: List[DataPoint] = Field(default_factory=list)
    layout: Optional[WidgetLayout] = None
    query_payload: Optional[QueryPayload] = None


class Widget(BaseModel):
    """A chart tile in the dashboard"""
    model_config = ConfigDict(frozen=True)

    id: str
    type: ChartType
    title: str = DEFAULT_TITLE
    data_keys: List[str] = Field(default_factory=lambda: [DEFAULT_DATA_KEY])
    data: List[DataPoint] = Field(default_factory=list)
    layout: WidgetLayout = Field(default_factory=WidgetLayout)
    query_payload: Optional[QueryPayload] = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def display_title(self) -> str:
        return self.title or DEFAULT_TITLE


def scalar(value: Any) -> Any:
    """Collapse a multi-valued cell to its first element"""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value

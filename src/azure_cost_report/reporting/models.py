"""
Report data models for the cost report pipeline.

Contains the Pydantic models shared by the resolver, normalizer, aggregator
and the HTTP transports.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

NOT_AVAILABLE = "N/A"
UNKNOWN_DATE = "Unknown"
NO_TAGS = "No tags"

DEFAULT_START_TIME = "00:00:00"
DEFAULT_END_TIME = "23:59:59"
DEFAULT_GRANULARITY = "Daily"
GRANULARITIES = ("Daily", "Monthly")

# Decimal internally, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="always")]

TagMap = dict[str, dict[str, str]]


def round_cost(value: Any) -> Decimal:
    """
    Round a cost to cents, half away from zero.

    Args:
        value: Number or numeric string

    Returns:
        Decimal with two decimal places

    Raises:
        ValueError: If the value is not numeric
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Cost value {value!r} is not numeric")
    try:
        # str() keeps the shortest repr so 10.005 rounds to 10.01
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Cost value {value!r} is not numeric") from e
    if not amount.is_finite():
        raise ValueError(f"Cost value {value!r} is not finite")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


class ParameterSet(BaseModel):
    """Request parameters after merging body, query string and defaults."""

    start_date: str | None = None
    end_date: str | None = None
    start_time: str = DEFAULT_START_TIME
    end_time: str = DEFAULT_END_TIME
    subscription_id: str | None = None
    include_tags: bool = True
    granularity: str = DEFAULT_GRANULARITY


class CostColumn(BaseModel):
    name: str
    type: str | None = None


class ColumnarCostResponse(BaseModel):
    """Cost query result: column names once, positional values per row."""

    columns: list[CostColumn] = Field(default_factory=list)
    rows: list[list[Any]] = Field(default_factory=list)

    @field_validator("columns", mode="before")
    @classmethod
    def coerce_column_names(cls, v: Any) -> Any:
        """Accept bare column names as well as {name, type} objects."""
        if isinstance(v, list):
            return [{"name": col} if isinstance(col, str) else col for col in v]
        return v

    def column_index(self) -> dict[str, int]:
        """Map each column name to its position in a row."""
        return {column.name: idx for idx, column in enumerate(self.columns)}


class CostRecord(BaseModel):
    """One normalized cost row."""

    model_config = ConfigDict(frozen=True)

    date: str
    cost: Money
    service_name: str = NOT_AVAILABLE
    resource_name: str = NOT_AVAILABLE
    resource_id: str = ""
    resource_group_name: str = NOT_AVAILABLE
    resource_type: str = NOT_AVAILABLE
    tags: str = NO_TAGS


class ServiceCost(BaseModel):
    service: str
    cost: Money


class ResourceCost(BaseModel):
    resource: str
    cost: Money


class DailyCost(BaseModel):
    date: str
    cost: Money


class SummaryStatistics(BaseModel):
    total_cost: Money = ZERO
    currency: str
    average_daily_cost: Money = ZERO
    unique_services: int = 0
    unique_resources: int = 0
    unique_resource_groups: int = 0
    top_services: list[ServiceCost] = Field(default_factory=list)
    top_resources: list[ResourceCost] = Field(default_factory=list)
    daily_breakdown: list[DailyCost] = Field(default_factory=list)


class ReportMetadata(BaseModel):
    start_date: str | None
    end_date: str | None
    start_time: str
    end_time: str
    subscription_id: str | None
    granularity: str
    include_tags: bool
    total_records: int
    generated_at: str


class ResponseEnvelope(BaseModel):
    summary: SummaryStatistics
    detailed_costs: list[CostRecord]
    metadata: ReportMetadata


class ErrorResponse(BaseModel):
    error: str
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(exclude_none=True)

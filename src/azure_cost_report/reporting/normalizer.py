"""
Cost record normalization and tag joining.

Turns the column-oriented Cost Management query result into flat CostRecord
objects and merges Resource Graph tags into them.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any, NamedTuple

from pydantic import ValidationError

from .models import (
    NO_TAGS,
    NOT_AVAILABLE,
    UNKNOWN_DATE,
    ZERO,
    ColumnarCostResponse,
    CostRecord,
    TagMap,
    round_cost,
)

logger = logging.getLogger(__name__)

USAGE_DATE = "UsageDate"
RESOURCE_ID = "ResourceId"
PRE_TAX_COST = "PreTaxCost"
SERVICE_NAME = "ServiceName"
RESOURCE_GROUP_NAME = "ResourceGroupName"
RESOURCE_TYPE = "ResourceType"

USAGE_DATE_PATTERN = re.compile(r"(\d{4})(\d{2})(\d{2})")


class NormalizationResult(NamedTuple):
    records: list[CostRecord]
    total_cost: Decimal


def parse_cost_response(payload: Mapping[str, Any]) -> ColumnarCostResponse:
    """
    Extract the columnar result from a raw Cost Management query payload.

    Raises:
        ValueError: If the payload has no usable properties block
    """
    properties = payload.get("properties") if isinstance(payload, Mapping) else None
    if not isinstance(properties, Mapping):
        raise ValueError("Cost query response is missing 'properties'")
    try:
        return ColumnarCostResponse(
            columns=properties.get("columns") or [],
            rows=properties.get("rows") or [],
        )
    except ValidationError as e:
        raise ValueError(f"Malformed cost query response: {e}") from e


def decode_usage_date(value: Any) -> str:
    """Convert a YYYYMMDD usage date into DD-MM-YYYY, or 'Unknown'."""
    if value is None or isinstance(value, bool):
        return UNKNOWN_DATE
    match = USAGE_DATE_PATTERN.fullmatch(str(value).strip())
    if not match:
        return UNKNOWN_DATE
    year, month, day = match.groups()
    return f"{day}-{month}-{year}"


def extract_resource_name(resource_id: str) -> str:
    """Last path segment of an ARM resource id."""
    if not resource_id:
        return NOT_AVAILABLE
    return resource_id.split("/")[-1]


def _text(row: list[Any], index: int | None, fallback: str) -> str:
    if index is None or index >= len(row):
        return fallback
    value = row[index]
    if value is None or value == "":
        return fallback
    return str(value)


def _cost(row: list[Any], index: int | None) -> Decimal:
    if index is None or index >= len(row):
        return ZERO
    try:
        return round_cost(row[index])
    except ValueError as e:
        logger.warning(f"Treating unreadable cost as zero: {e}")
        return ZERO


def normalize_cost_rows(response: ColumnarCostResponse) -> NormalizationResult:
    """
    Build one CostRecord per row, in row order.

    The running total is the sum of the per-row costs after each has been
    rounded to cents.
    """
    index = response.column_index()
    date_idx = index.get(USAGE_DATE)
    resource_id_idx = index.get(RESOURCE_ID)
    cost_idx = index.get(PRE_TAX_COST)
    service_idx = index.get(SERVICE_NAME)
    group_idx = index.get(RESOURCE_GROUP_NAME)
    type_idx = index.get(RESOURCE_TYPE)

    logger.info(f"Processing {len(response.rows)} records")

    records = []
    total_cost = ZERO
    for row in response.rows:
        date_value = UNKNOWN_DATE
        if date_idx is not None and date_idx < len(row):
            date_value = decode_usage_date(row[date_idx])

        resource_id = _text(row, resource_id_idx, "")
        cost = _cost(row, cost_idx)
        total_cost += cost

        records.append(
            CostRecord(
                date=date_value,
                cost=cost,
                service_name=_text(row, service_idx, NOT_AVAILABLE),
                resource_name=extract_resource_name(resource_id),
                resource_id=resource_id,
                resource_group_name=_text(row, group_idx, NOT_AVAILABLE),
                resource_type=_text(row, type_idx, NOT_AVAILABLE),
            )
        )

    return NormalizationResult(records, total_cost)


def format_tags(tags: Mapping[str, Any] | None) -> str:
    """Render tags as 'K1=V1; K2=V2' in the order received."""
    if not tags:
        return NO_TAGS
    return "; ".join(f"{key}={'' if value is None else value}" for key, value in tags.items())


def apply_tags(
    records: Iterable[CostRecord], tag_map: TagMap | None, include_tags: bool
) -> list[CostRecord]:
    """Return copies of the records with their tags field filled in."""
    if not include_tags or not tag_map:
        return [record.model_copy(update={"tags": NO_TAGS}) for record in records]

    tagged = []
    for record in records:
        tags_str = NO_TAGS
        if record.resource_id:
            tags_str = format_tags(tag_map.get(record.resource_id))
        tagged.append(record.model_copy(update={"tags": tags_str}))
    return tagged


def sort_cost_records(records: Iterable[CostRecord]) -> list[CostRecord]:
    """
    Order by date string ascending, then cost descending.

    Dates are DD-MM-YYYY strings compared as text, so the order is by day of
    month first rather than chronological.
    """
    return sorted(records, key=lambda record: (record.date, -record.cost))

"""
Cost summarization and report assembly.

Computes the summary views of a normalized cost report (totals, unique
counts, top services and resources, daily breakdown) and wraps them with the
itemized records and request metadata.
"""

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from .models import (
    NOT_AVAILABLE,
    ZERO,
    ColumnarCostResponse,
    CostRecord,
    DailyCost,
    ParameterSet,
    ReportMetadata,
    ResourceCost,
    ResponseEnvelope,
    ServiceCost,
    SummaryStatistics,
    TagMap,
    round_cost,
)
from .normalizer import apply_tags, normalize_cost_rows, parse_cost_response, sort_cost_records
from .parameters import parse_request_date

logger = logging.getLogger(__name__)

TOP_SERVICES_LIMIT = 5
TOP_RESOURCES_LIMIT = 10


def _sum_by(records: Sequence[CostRecord], key_fn) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for record in records:
        key = key_fn(record)
        if key is None:
            continue
        totals[key] = totals.get(key, ZERO) + record.cost
    return totals


def _ranked(totals: dict[str, Decimal], limit: int) -> list[tuple[str, Decimal]]:
    # sorted() is stable, so equal costs keep first-seen order
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [(name, round_cost(cost)) for name, cost in ranked[:limit]]


def count_days(params: ParameterSet) -> int:
    """Inclusive number of days between the requested start and end dates."""
    start = parse_request_date(params.start_date)
    end = parse_request_date(params.end_date)
    return (end - start).days + 1


def summarize_costs(
    records: Sequence[CostRecord],
    total_cost: Decimal,
    params: ParameterSet,
    currency: str = "INR",
    top_services_limit: int = TOP_SERVICES_LIMIT,
    top_resources_limit: int = TOP_RESOURCES_LIMIT,
) -> SummaryStatistics:
    """
    Create summary statistics from the detailed cost records.

    Args:
        records: Sorted cost records
        total_cost: Sum of the rounded per-record costs
        params: Validated request parameters, used for the day count
        currency: Currency label to report
        top_services_limit: Number of services to rank
        top_resources_limit: Number of resources to rank

    Returns:
        SummaryStatistics for the records
    """
    if not records:
        return SummaryStatistics(currency=currency)

    days = count_days(params)
    average = round_cost(total_cost / days) if days > 0 else ZERO

    unique_services = {r.service_name for r in records if r.service_name != NOT_AVAILABLE}
    unique_resources = {r.resource_id for r in records if r.resource_id}
    unique_groups = {
        r.resource_group_name for r in records if r.resource_group_name != NOT_AVAILABLE
    }

    service_costs = _sum_by(
        records, lambda r: r.service_name if r.service_name != NOT_AVAILABLE else None
    )
    resource_costs = _sum_by(
        records,
        lambda r: (
            f"{r.resource_name} ({r.service_name})" if r.resource_name != NOT_AVAILABLE else None
        ),
    )
    daily_costs = _sum_by(records, lambda r: r.date)

    return SummaryStatistics(
        total_cost=round_cost(total_cost),
        currency=currency,
        average_daily_cost=average,
        unique_services=len(unique_services),
        unique_resources=len(unique_resources),
        unique_resource_groups=len(unique_groups),
        top_services=[
            ServiceCost(service=name, cost=cost)
            for name, cost in _ranked(service_costs, top_services_limit)
        ],
        top_resources=[
            ResourceCost(resource=name, cost=cost)
            for name, cost in _ranked(resource_costs, top_resources_limit)
        ],
        daily_breakdown=[
            DailyCost(date=day, cost=round_cost(cost)) for day, cost in sorted(daily_costs.items())
        ],
    )


def generated_timestamp() -> str:
    """Current UTC time in ISO 8601 with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_report(
    summary: SummaryStatistics, records: Sequence[CostRecord], params: ParameterSet
) -> ResponseEnvelope:
    """Combine summary, detail and metadata into the response envelope."""
    metadata = ReportMetadata(
        start_date=params.start_date,
        end_date=params.end_date,
        start_time=params.start_time,
        end_time=params.end_time,
        subscription_id=params.subscription_id,
        granularity=params.granularity,
        include_tags=params.include_tags,
        total_records=len(records),
        generated_at=generated_timestamp(),
    )
    return ResponseEnvelope(summary=summary, detailed_costs=list(records), metadata=metadata)


def process_cost_data(
    cost_response: ColumnarCostResponse | Mapping[str, Any],
    resource_tags: TagMap | None,
    params: ParameterSet,
    currency: str = "INR",
    top_services_limit: int = TOP_SERVICES_LIMIT,
    top_resources_limit: int = TOP_RESOURCES_LIMIT,
) -> ResponseEnvelope:
    """
    Run normalization, tag join, sorting and summarization over a cost result.

    Args:
        cost_response: Columnar result, or the raw query payload
        resource_tags: Resource id to tags mapping
        params: Validated request parameters
        currency: Currency label to report
        top_services_limit: Number of services to rank
        top_resources_limit: Number of resources to rank

    Returns:
        Complete response envelope
    """
    if not isinstance(cost_response, ColumnarCostResponse):
        cost_response = parse_cost_response(cost_response)

    normalized = normalize_cost_rows(cost_response)
    records = apply_tags(normalized.records, resource_tags, params.include_tags)
    records = sort_cost_records(records)

    summary = summarize_costs(
        records,
        normalized.total_cost,
        params,
        currency=currency,
        top_services_limit=top_services_limit,
        top_resources_limit=top_resources_limit,
    )
    logger.info(
        f"Summarized {len(records)} records, total {summary.total_cost} {summary.currency}"
    )
    return build_report(summary, records, params)

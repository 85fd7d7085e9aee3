"""
Cost report request pipeline.

Contains the transport-independent request handling shared by the
serverless handler, the FastAPI app and the CLI.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

from ..config.settings import FunctionConfig, get_config
from ..providers.azure import AzureCostClient
from ..providers.base import CostDataSource, TagQueryError
from ..reporting.aggregator import process_cost_data
from ..reporting.models import (
    ColumnarCostResponse,
    ErrorResponse,
    ParameterSet,
    ResponseEnvelope,
    TagMap,
)
from ..reporting.parameters import resolve_parameters, validate_parameters

logger = logging.getLogger(__name__)

SourceFactory = Callable[[FunctionConfig], CostDataSource]


def default_source_factory(config: FunctionConfig) -> CostDataSource:
    return AzureCostClient(config)


async def _fetch_tags_or_empty(source: CostDataSource, token: str, subscription_id: str) -> TagMap:
    try:
        return await source.fetch_resource_tags(token, subscription_id)
    except TagQueryError as e:
        logger.warning(f"Failed to fetch tags: {e}")
        return {}
    except Exception as e:
        logger.warning(f"Failed to fetch tags: unexpected {type(e).__name__}: {e}")
        return {}


async def _fetch_cost_and_tags(
    source: CostDataSource, token: str, params: ParameterSet
) -> tuple[ColumnarCostResponse, TagMap]:
    cost_task = asyncio.create_task(source.fetch_cost_data(token, params))
    tags_task = asyncio.create_task(_fetch_tags_or_empty(source, token, params.subscription_id))
    try:
        cost_response = await cost_task
    except BaseException:
        # The source is closed once this returns, so the tag query must not outlive it
        cost_task.cancel()
        tags_task.cancel()
        await asyncio.gather(cost_task, tags_task, return_exceptions=True)
        raise
    return cost_response, await tags_task


async def generate_cost_report(
    params: ParameterSet, source: CostDataSource, config: FunctionConfig | None = None
) -> ResponseEnvelope:
    """
    Fetch cost and tag data for validated parameters and build the report.

    The cost and tag queries run concurrently once a token is available. A
    failed tag query leaves every record untagged. A failed cost query
    cancels the tag query and propagates.
    """
    config = config or get_config()
    token = await source.authenticate()

    if params.include_tags:
        cost_response, resource_tags = await _fetch_cost_and_tags(source, token, params)
    else:
        cost_response = await source.fetch_cost_data(token, params)
        resource_tags = {}

    return process_cost_data(
        cost_response,
        resource_tags,
        params,
        currency=config.currency,
        top_services_limit=config.top_services_limit,
        top_resources_limit=config.top_resources_limit,
    )


async def handle_cost_request(
    method: str,
    body: str | bytes | Mapping[str, Any] | None,
    query: Mapping[str, Any] | None,
    source_factory: SourceFactory | None = None,
    config: FunctionConfig | None = None,
) -> tuple[int, dict[str, Any] | None]:
    """
    Process one cost report request.

    Returns:
        Tuple of HTTP status code and JSON-ready payload (None for preflight)
    """
    if method.upper() == "OPTIONS":
        return 200, None

    logger.info("Azure cost report function received a request")
    config = config or get_config()
    source_factory = source_factory or default_source_factory

    try:
        params = resolve_parameters(body, query, config.default_subscription_id)

        validation_error = validate_parameters(params, config.max_range_days)
        if validation_error:
            logger.warning(f"Rejected request: {validation_error}")
            return 400, ErrorResponse(error=validation_error).to_dict()

        async with source_factory(config) as source:
            report = await generate_cost_report(params, source, config)

        return 200, report.model_dump(mode="json")

    except Exception as e:
        logger.error(f"Error processing request: {e}", exc_info=True)
        return 500, ErrorResponse(error="Internal server error", message=str(e)).to_dict()

"""
Serverless entry point for the cost report function.

HTTP triggered function (Netlify / AWS Lambda proxy event format) that
returns Azure cost data for a requested date range.
"""

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any

from ..config.settings import FunctionConfig
from ..reporting.parameters import decode_event_body
from .service import SourceFactory, handle_cost_request

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Content-Type": "application/json",
}


def _response(status_code: int, payload: dict[str, Any] | None) -> dict[str, Any]:
    if payload is None:
        body = ""
    elif status_code == 200:
        body = json.dumps(payload, indent=2)
    else:
        body = json.dumps(payload)
    return {"statusCode": status_code, "headers": dict(CORS_HEADERS), "body": body}


async def handle_event(
    event: Mapping[str, Any],
    source_factory: SourceFactory | None = None,
    config: FunctionConfig | None = None,
) -> dict[str, Any]:
    """Process a serverless HTTP event and return the proxy response dict."""
    method = event.get("httpMethod") or "GET"
    status_code, payload = await handle_cost_request(
        method,
        decode_event_body(event),
        event.get("queryStringParameters") or {},
        source_factory=source_factory,
        config=config,
    )
    return _response(status_code, payload)


def handler(event: Mapping[str, Any], context: Any = None) -> dict[str, Any]:
    """Synchronous entry point invoked by the serverless runtime."""
    return asyncio.run(handle_event(event))

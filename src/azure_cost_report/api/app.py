#!/usr/bin/env python3
"""
Cost Report Service - FastAPI Backend
Serves the cost report function over HTTP for local runs and container deployments.
"""

import logging
from datetime import datetime

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config.settings import FunctionConfig, get_config
from .handler import CORS_HEADERS
from .service import SourceFactory, default_source_factory, handle_cost_request

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

COST_PATHS = ["/api/costs", "/.netlify/functions/get-azure-costs"]

app = FastAPI(
    title="Azure Cost Report Service",
    version=__version__,
    description="Summarized and itemized Azure cost reports",
)


class EmptyPreflightCORSMiddleware(CORSMiddleware):
    """CORSMiddleware whose successful preflight replies carry no body."""

    def preflight_response(self, request_headers):
        response = super().preflight_response(request_headers)
        if response.status_code == 200:
            response.body = b""
            response.headers["content-length"] = "0"
        return response


# CORS middleware
app.add_middleware(
    EmptyPreflightCORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


def get_source_factory() -> SourceFactory:
    return default_source_factory


def get_function_config() -> FunctionConfig:
    return get_config()


@app.get("/api/health/live")
async def health_live():
    """Liveness probe"""
    return {"status": "alive", "timestamp": datetime.now().isoformat(), "version": __version__}


async def cost_report(
    request: Request,
    source_factory: SourceFactory = Depends(get_source_factory),
    config: FunctionConfig = Depends(get_function_config),
):
    """Return the cost report for the dates in the body or query string."""
    body = await request.body() if request.method == "POST" else None
    status_code, payload = await handle_cost_request(
        request.method,
        body,
        dict(request.query_params),
        source_factory=source_factory,
        config=config,
    )
    if payload is None:
        return Response(status_code=status_code, headers=CORS_HEADERS)
    return JSONResponse(status_code=status_code, content=payload)


for path in COST_PATHS:
    app.add_api_route(path, cost_report, methods=["GET", "POST", "OPTIONS"])

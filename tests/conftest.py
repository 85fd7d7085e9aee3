"""
Pytest configuration and shared fixtures for cost report tests.

This module provides common fixtures and configurations used across
all test modules in the cost report function.
"""

import asyncio
import copy
import os
from collections.abc import Generator
from typing import Any

import pytest
from dynaconf import Dynaconf

from azure_cost_report.config.settings import FunctionConfig
from azure_cost_report.providers.base import CostDataSource
from azure_cost_report.reporting.models import ColumnarCostResponse, ParameterSet, TagMap
from azure_cost_report.reporting.normalizer import parse_cost_response

VM_ID = "/subscriptions/sub-1/resourcegroups/rg-app/providers/microsoft.compute/virtualmachines/vm-web"
STORAGE_ID = (
    "/subscriptions/sub-1/resourcegroups/rg-data/providers/microsoft.storage/storageaccounts/stdata"
)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "azure: mark test as Azure-specific")


# Environment fixture
@pytest.fixture
def clean_env() -> Generator[dict[str, str], None, None]:
    """Provide a clean environment for testing."""
    original_env = os.environ.copy()
    env_vars_to_clear = [
        "AZURE_CLIENT_ID",
        "AZURE_CLIENT_SECRET",
        "AZURE_TENANT_ID",
        "AZURE_SUBSCRIPTION_ID",
    ]

    for var in env_vars_to_clear:
        os.environ.pop(var, None)

    yield os.environ

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


# Configuration fixtures
@pytest.fixture
def test_settings() -> dict[str, Any]:
    """Provide test configuration values."""
    return {
        "client_id": "test_client_id",
        "client_secret": "test_client_secret",  # pragma: allowlist secret
        "tenant_id": "test_tenant_id",
        "subscription_id": "sub-default",
        "report": {
            "currency": "INR",
            "max_range_days": 365,
            "top_services_limit": 5,
            "top_resources_limit": 10,
        },
        "api": {
            "management_url": "https://management.azure.com",
            "cost_api_version": "2023-03-01",
            "graph_api_version": "2021-03-01",
            "timeout": 5,
        },
        "server": {"host": "127.0.0.1", "port": 8888},
    }


def make_config(values: dict[str, Any]) -> FunctionConfig:
    source = Dynaconf(envvar_prefix="COST_REPORT_TEST", environments=False, load_dotenv=False)
    source.update(copy.deepcopy(values))
    return FunctionConfig(source)


@pytest.fixture
def test_config(test_settings) -> FunctionConfig:
    """FunctionConfig backed by an isolated dynaconf instance."""
    return make_config(test_settings)


@pytest.fixture
def no_credentials_config(test_settings) -> FunctionConfig:
    values = dict(test_settings)
    for key in ("client_id", "client_secret", "tenant_id"):
        values.pop(key)
    return make_config(values)


# Sample data fixtures
@pytest.fixture
def cost_payload() -> dict[str, Any]:
    """Cost Management query payload in the shape the API returns."""
    return {
        "id": "subscriptions/sub-1/providers/Microsoft.CostManagement/query/abc",
        "name": "abc",
        "type": "Microsoft.CostManagement/query",
        "properties": {
            "nextLink": None,
            "columns": [
                {"name": "PreTaxCost", "type": "Number"},
                {"name": "UsageDate", "type": "Number"},
                {"name": "ServiceName", "type": "String"},
                {"name": "ResourceId", "type": "String"},
                {"name": "ResourceGroupName", "type": "String"},
                {"name": "ResourceType", "type": "String"},
                {"name": "Currency", "type": "String"},
            ],
            "rows": [
                [
                    12.3456,
                    20240102,
                    "Virtual Machines",
                    VM_ID,
                    "rg-app",
                    "microsoft.compute/virtualmachines",
                    "INR",
                ],
                [
                    3.2,
                    20240101,
                    "Storage",
                    STORAGE_ID,
                    "rg-data",
                    "microsoft.storage/storageaccounts",
                    "INR",
                ],
                [
                    7.005,
                    20240101,
                    "Virtual Machines",
                    VM_ID,
                    "rg-app",
                    "microsoft.compute/virtualmachines",
                    "INR",
                ],
                [0.5, 20240102, "Bandwidth", "", "", "", "INR"],
            ],
        },
    }


@pytest.fixture
def cost_response(cost_payload) -> ColumnarCostResponse:
    return parse_cost_response(cost_payload)


@pytest.fixture
def resource_tags() -> TagMap:
    """Tags keyed by the same resource ids the cost rows carry."""
    return {
        VM_ID: {"Env": "PRD", "Team": "Eng"},
        STORAGE_ID: {},
    }


@pytest.fixture
def sample_params() -> ParameterSet:
    return ParameterSet(
        start_date="2024-01-01",
        end_date="2024-01-02",
        subscription_id="sub-1",
        include_tags=True,
    )


class FakeCostSource(CostDataSource):
    """In-memory CostDataSource recording how it was called."""

    def __init__(
        self,
        cost_payload: dict[str, Any] | None = None,
        tags: TagMap | None = None,
        auth_error: Exception | None = None,
        cost_error: Exception | None = None,
        tag_error: Exception | None = None,
        require_concurrency: bool = False,
        tag_delay: float = 0.0,
    ):
        self.cost_payload = cost_payload or {"properties": {"columns": [], "rows": []}}
        self.tags = tags or {}
        self.auth_error = auth_error
        self.cost_error = cost_error
        self.tag_error = tag_error
        self.require_concurrency = require_concurrency
        self.tag_delay = tag_delay
        self.tags_cancelled = False
        self.calls: list[str] = []
        self.closed = False
        self._tags_started = asyncio.Event()

    async def authenticate(self) -> str:
        self.calls.append("authenticate")
        if self.auth_error:
            raise self.auth_error
        return "fake-token"

    async def fetch_cost_data(self, token: str, params: ParameterSet) -> ColumnarCostResponse:
        self.calls.append("fetch_cost_data")
        assert token == "fake-token"
        if self.require_concurrency:
            # Only completes when the tag query is in flight at the same time
            await asyncio.wait_for(self._tags_started.wait(), timeout=1)
        if self.cost_error:
            raise self.cost_error
        return parse_cost_response(self.cost_payload)

    async def fetch_resource_tags(self, token: str, subscription_id: str) -> TagMap:
        self.calls.append("fetch_resource_tags")
        self._tags_started.set()
        try:
            if self.tag_delay:
                await asyncio.sleep(self.tag_delay)
        except asyncio.CancelledError:
            self.tags_cancelled = True
            raise
        if self.tag_error:
            raise self.tag_error
        return self.tags

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_source(cost_payload, resource_tags) -> FakeCostSource:
    return FakeCostSource(cost_payload=cost_payload, tags=resource_tags)


@pytest.fixture
def source_factory(fake_source):
    """Source factory that always hands out the shared fake source."""

    def factory(config):
        return fake_source

    return factory


@pytest.fixture
def fake_source_cls():
    """The FakeCostSource class, for tests that need a custom fake."""
    return FakeCostSource

"""
Tests for the cost data source interface.

Tests the abstract CostDataSource base class and the error hierarchy
shared by the billing integration.
"""

import pytest

from azure_cost_report.providers.base import (
    APIError,
    AuthenticationError,
    CostDataSource,
    CostQueryError,
    CostReportError,
    TagQueryError,
)


class MinimalSource(CostDataSource):
    """Smallest concrete data source, relying on the default close()."""

    async def authenticate(self) -> str:
        return "token"

    async def fetch_cost_data(self, token, params):
        return None

    async def fetch_resource_tags(self, token, subscription_id):
        return {}


class TestCostDataSource:
    """Test cases for CostDataSource."""

    def test_cannot_instantiate_abstract_class(self):
        with pytest.raises(TypeError):
            CostDataSource()

    def test_provider_name(self):
        assert MinimalSource().provider_name == "azure"

    @pytest.mark.asyncio
    async def test_async_context_manager_closes(self, fake_source):
        async with fake_source as source:
            assert source is fake_source
            assert fake_source.closed is False

        assert fake_source.closed is True

    @pytest.mark.asyncio
    async def test_close_on_error(self, fake_source):
        with pytest.raises(RuntimeError):
            async with fake_source:
                raise RuntimeError("boom")

        assert fake_source.closed is True

    @pytest.mark.asyncio
    async def test_default_close_is_noop(self):
        async with MinimalSource() as source:
            assert await source.authenticate() == "token"


class TestErrorHierarchy:
    """Test cases for the provider exceptions."""

    def test_api_error_fields(self):
        error = CostQueryError("quota exceeded", status_code=429, provider="azure")

        assert str(error) == "quota exceeded"
        assert error.status_code == 429
        assert error.provider == "azure"

    def test_api_error_defaults(self):
        error = TagQueryError("graph unavailable")

        assert error.status_code is None
        assert error.provider is None

    @pytest.mark.parametrize(
        "error_cls", [AuthenticationError, APIError, CostQueryError, TagQueryError]
    )
    def test_all_errors_share_base(self, error_cls):
        assert issubclass(error_cls, CostReportError)

    def test_tag_and_cost_errors_are_distinct(self):
        assert not issubclass(TagQueryError, CostQueryError)
        assert not issubclass(CostQueryError, TagQueryError)

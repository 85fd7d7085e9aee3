"""
Abstract cost data source and error types for the cost report pipeline.

Defines the interface the upstream billing integration must follow so the
pipeline can be driven by the real Azure client or by a test double.
"""

from abc import ABC, abstractmethod

from ..reporting.models import ColumnarCostResponse, ParameterSet, TagMap


class CostReportError(Exception):
    """Base exception for cost report errors."""

    pass


class AuthenticationError(CostReportError):
    """Authentication-related errors."""

    pass


class ConfigurationError(CostReportError):
    """Configuration-related errors."""

    pass


class APIError(CostReportError):
    """API-related errors."""

    def __init__(self, message: str, status_code: int | None = None, provider: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class CostQueryError(APIError):
    """The cost query failed; fatal for the request."""

    pass


class TagQueryError(APIError):
    """The resource tag query failed; the report degrades to untagged records."""

    pass


class CostDataSource(ABC):
    """Abstract base class for billing data sources."""

    provider_name = "azure"

    @abstractmethod
    async def authenticate(self) -> str:
        """
        Obtain a bearer token for the billing APIs.

        Returns:
            Access token

        Raises:
            AuthenticationError: If credentials are missing or rejected
        """
        pass

    @abstractmethod
    async def fetch_cost_data(self, token: str, params: ParameterSet) -> ColumnarCostResponse:
        """
        Run the cost query for the requested period.

        Args:
            token: Bearer token from authenticate()
            params: Validated request parameters

        Returns:
            Columnar cost query result

        Raises:
            CostQueryError: If the API call fails
        """
        pass

    @abstractmethod
    async def fetch_resource_tags(self, token: str, subscription_id: str) -> TagMap:
        """
        Fetch tags for every resource in the subscription.

        Args:
            token: Bearer token from authenticate()
            subscription_id: Subscription to scope the query to

        Returns:
            Mapping of resource id to its tags

        Raises:
            TagQueryError: If the API call fails
        """
        pass

    async def close(self):
        """Release any held connections."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

"""Upstream billing data sources."""

from .azure import AzureCostClient
from .base import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    CostDataSource,
    CostQueryError,
    CostReportError,
    TagQueryError,
)

"""
Azure Cost Management and Resource Graph client.

Authenticates a service principal through azure-identity and runs the cost
and resource tag queries over the Azure management REST API.
"""

import asyncio
import logging
from typing import Any

import httpx
from azure.identity import ClientSecretCredential

from ..config.settings import MANAGEMENT_SCOPE, FunctionConfig, get_config
from ..reporting.models import ColumnarCostResponse, ParameterSet, TagMap
from ..reporting.normalizer import parse_cost_response
from .base import AuthenticationError, CostDataSource, CostQueryError, TagQueryError

logger = logging.getLogger(__name__)

COST_GROUPING = ["ServiceName", "ResourceId", "ResourceGroupName", "ResourceType"]


def build_cost_query(params: ParameterSet) -> dict[str, Any]:
    """Cost Management query body for the requested period."""
    return {
        "type": "ActualCost",
        "timeframe": "Custom",
        "timePeriod": {
            "from": f"{params.start_date}T{params.start_time}Z",
            "to": f"{params.end_date}T{params.end_time}Z",
        },
        "dataset": {
            "granularity": params.granularity,
            "aggregation": {"totalCost": {"name": "PreTaxCost", "function": "Sum"}},
            "grouping": [{"type": "Dimension", "name": name} for name in COST_GROUPING],
        },
    }


def build_tag_query(subscription_id: str) -> dict[str, Any]:
    """Resource Graph query listing every resource id with its tags."""
    return {
        "subscriptions": [subscription_id],
        "query": "Resources | project id, tags",
    }


def tag_map_from_resources(resources: list[dict[str, Any]]) -> TagMap:
    """
    Build a resource id keyed tag map; untagged resources map to {}.

    Raises:
        TagQueryError: If an entry is not a resource object
    """
    resource_tags: TagMap = {}
    for resource in resources:
        if not isinstance(resource, dict):
            raise TagQueryError(
                f"Unexpected resource entry of type {type(resource).__name__}", provider="azure"
            )
        resource_id = resource.get("id")
        if not resource_id:
            continue
        tags = resource.get("tags")
        resource_tags[resource_id] = dict(tags) if isinstance(tags, dict) else {}
    return resource_tags


class AzureCostClient(CostDataSource):
    """Azure billing data source backed by the management REST API."""

    def __init__(
        self,
        config: FunctionConfig | None = None,
        credential: Any | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or get_config()
        self._credential = credential
        self._client = httpx.AsyncClient(
            base_url=self.config.management_url,
            timeout=self.config.timeout,
            transport=transport,
        )

    def _get_credential(self):
        if self._credential is None:
            if not self.config.has_credentials:
                raise AuthenticationError("Missing Azure credentials in environment variables")
            self._credential = ClientSecretCredential(
                tenant_id=self.config.tenant_id,
                client_id=self.config.client_id,
                client_secret=self.config.client_secret,
            )
        return self._credential

    async def authenticate(self) -> str:
        """Exchange the service principal credentials for a management token."""
        logger.info("Authenticating with Azure...")
        credential = self._get_credential()

        try:
            access_token = await asyncio.to_thread(credential.get_token, MANAGEMENT_SCOPE)
        except Exception as e:
            logger.error(f"Azure authentication failed: {e}")
            raise AuthenticationError(f"Failed to authenticate with Azure: {e}") from e

        logger.info("Authentication successful")
        return access_token.token

    async def _post(self, path: str, api_version: str, token: str, payload: dict[str, Any]):
        response = await self._client.post(
            path,
            params={"api-version": api_version},
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        return response.json()

    async def fetch_cost_data(self, token: str, params: ParameterSet) -> ColumnarCostResponse:
        """Run the Cost Management query for the requested subscription and period."""
        logger.info(
            f"Fetching cost data from {params.start_date} {params.start_time} "
            f"to {params.end_date} {params.end_time}"
        )
        path = f"/subscriptions/{params.subscription_id}/providers/Microsoft.CostManagement/query"

        try:
            payload = await self._post(
                path, self.config.cost_api_version, token, build_cost_query(params)
            )
        except httpx.HTTPStatusError as e:
            raise CostQueryError(
                f"Cost query failed with status {e.response.status_code}: {e.response.text}",
                status_code=e.response.status_code,
                provider=self.provider_name,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise CostQueryError(f"Cost query failed: {e}", provider=self.provider_name) from e

        try:
            cost_response = parse_cost_response(payload)
        except ValueError as e:
            raise CostQueryError(str(e), provider=self.provider_name) from e

        logger.info(f"Cost data retrieved successfully: {len(cost_response.rows)} rows")
        return cost_response

    async def fetch_resource_tags(self, token: str, subscription_id: str) -> TagMap:
        """Fetch resource tags for the subscription through Resource Graph."""
        logger.info("Fetching resource tags...")

        try:
            payload = await self._post(
                "/providers/Microsoft.ResourceGraph/resources",
                self.config.graph_api_version,
                token,
                build_tag_query(subscription_id),
            )
        except httpx.HTTPStatusError as e:
            raise TagQueryError(
                f"Tag query failed with status {e.response.status_code}",
                status_code=e.response.status_code,
                provider=self.provider_name,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TagQueryError(f"Tag query failed: {e}", provider=self.provider_name) from e

        resources = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(resources, list):
            raise TagQueryError(
                "Tag query response has no resource list", provider=self.provider_name
            )

        logger.info(f"Found {len(resources)} resources")
        try:
            return tag_map_from_resources(resources)
        except (TypeError, ValueError) as e:
            raise TagQueryError(
                f"Malformed tag query response: {e}", provider=self.provider_name
            ) from e

    async def close(self):
        await self._client.aclose()
        if isinstance(self._credential, ClientSecretCredential):
            self._credential.close()

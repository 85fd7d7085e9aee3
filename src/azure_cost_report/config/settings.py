"""
Configuration management for the Azure cost report function.

Uses dynaconf for flexible configuration with YAML files and environment overrides.
Credentials keep the conventional Azure variable names (AZURE_CLIENT_ID,
AZURE_CLIENT_SECRET, AZURE_TENANT_ID, AZURE_SUBSCRIPTION_ID).
"""

import logging
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf, Validator

logger = logging.getLogger(__name__)

# Get the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

MANAGEMENT_SCOPE = "https://management.azure.com/.default"

# Initialize dynaconf with multiple configuration sources
settings = Dynaconf(
    envvar_prefix="AZURE",
    settings_files=[
        str(CONFIG_DIR / "config.yaml"),  # Base configuration
        str(CONFIG_DIR / "config.local.yaml"),  # Local overrides (git-ignored)
        str(CONFIG_DIR / ".secrets.yaml"),  # Secrets file (git-ignored)
    ],
    environments=False,
    load_dotenv=True,
    merge_enabled=True,
    envvar_separator="__",  # Support nested config via AZURE_REPORT__CURRENCY=USD
    validators=[
        Validator("report.currency", default="INR"),
        Validator("report.max_range_days", default=365, gte=1),
        Validator("report.top_services_limit", default=5, gte=1),
        Validator("report.top_resources_limit", default=10, gte=1),
        Validator("api.management_url", default="https://management.azure.com"),
        Validator("api.cost_api_version", default="2023-03-01"),
        Validator("api.graph_api_version", default="2021-03-01"),
        Validator("api.timeout", default=60, gt=0),
        Validator("server.host", default="0.0.0.0"),
        Validator("server.port", default=8888, gte=1024, lte=65535),
    ],
)


class FunctionConfig:
    """Configuration wrapper for the cost report function."""

    def __init__(self, source: Dynaconf | None = None):
        self.settings = source if source is not None else settings
        self._validate_config()

    def _validate_config(self):
        """Validate the configuration and apply defaults."""
        try:
            self.settings.validators.validate()
        except Exception as e:
            # Credentials may legitimately be missing until the first request
            logger.warning(f"Configuration validation warning: {e}")

    def _get_str(self, key: str) -> str | None:
        value = self.settings.get(key)
        if value is None or value == "":
            return None
        return str(value)

    @property
    def client_id(self) -> str | None:
        """Service principal application (client) id."""
        return self._get_str("client_id")

    @property
    def client_secret(self) -> str | None:
        """Service principal secret."""
        return self._get_str("client_secret")

    @property
    def tenant_id(self) -> str | None:
        """Azure AD tenant id."""
        return self._get_str("tenant_id")

    @property
    def default_subscription_id(self) -> str | None:
        """Subscription used when a request does not name one."""
        return self._get_str("subscription_id")

    @property
    def has_credentials(self) -> bool:
        return all([self.client_id, self.client_secret, self.tenant_id])

    @property
    def report(self) -> dict[str, Any]:
        """Report shaping settings."""
        return self.settings.get("report", {})

    @property
    def api(self) -> dict[str, Any]:
        """Upstream Azure API settings."""
        return self.settings.get("api", {})

    @property
    def server(self) -> dict[str, Any]:
        """Local HTTP server settings."""
        return self.settings.get("server", {})

    @property
    def currency(self) -> str:
        return str(self.report.get("currency", "INR"))

    @property
    def max_range_days(self) -> int:
        return int(self.report.get("max_range_days", 365))

    @property
    def top_services_limit(self) -> int:
        return int(self.report.get("top_services_limit", 5))

    @property
    def top_resources_limit(self) -> int:
        return int(self.report.get("top_resources_limit", 10))

    @property
    def management_url(self) -> str:
        return str(self.api.get("management_url", "https://management.azure.com")).rstrip("/")

    @property
    def cost_api_version(self) -> str:
        return str(self.api.get("cost_api_version", "2023-03-01"))

    @property
    def graph_api_version(self) -> str:
        return str(self.api.get("graph_api_version", "2021-03-01"))

    @property
    def timeout(self) -> float:
        return float(self.api.get("timeout", 60))

    def override_from_cli(self, cli_args: dict[str, Any]):
        """Override configuration with CLI arguments."""
        cli_mapping = {
            "subscription_id": "subscription_id",
            "currency": "report.currency",
            "timeout": "api.timeout",
            "host": "server.host",
            "port": "server.port",
        }

        for cli_key, config_path in cli_mapping.items():
            if cli_args.get(cli_key) is not None:
                self.settings.set(config_path, cli_args[cli_key])

        # Re-validate after overrides
        self._validate_config()


# Global configuration instance
config = FunctionConfig()


def get_config() -> FunctionConfig:
    """Get the global configuration instance."""
    return config


def reload_config() -> FunctionConfig:
    """Reload configuration from files and environment."""
    global config
    settings.reload()
    config = FunctionConfig()
    return config

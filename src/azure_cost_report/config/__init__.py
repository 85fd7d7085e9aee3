"""Configuration for the Azure cost report function."""

from .settings import FunctionConfig, get_config, reload_config

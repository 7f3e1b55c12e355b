"""Configuration module for blady."""

from blady.config.loader import load_config, get_config_path
from blady.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]

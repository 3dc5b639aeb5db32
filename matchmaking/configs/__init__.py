"""Configuration loading."""

from .loader import load_config, validate_config, get_config_value, REQUIRED_SECTIONS

__all__ = ["load_config", "validate_config", "get_config_value", "REQUIRED_SECTIONS"]

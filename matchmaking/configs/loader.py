"""
Configuration loading and validation.

This module handles loading of YAML configuration files and
validates the sections the matching engine reads.
"""

import logging
from pathlib import Path
from typing import Dict, Any, List

import yaml

from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ["global", "signals", "attendee", "engine", "cache", "batch", "weights", "taxonomy"]

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def load_config(filepath: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        filepath: Path to the YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValidationError: If the file is empty
        yaml.YAMLError: If YAML is invalid
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    logger.info(f"Loading configuration from {filepath}")
    with open(filepath, "r") as f:
        config = yaml.safe_load(f)

    if config is None:
        raise ValidationError(f"Configuration file is empty: {filepath}")

    return config


def _check_range(issues: List[str], config: Dict[str, Any], path: str, low: float, high: float) -> None:
    value = get_config_value(config, path)
    if value is not None and not low <= value <= high:
        issues.append(f"{path} must be in [{low}, {high}], got {value}")


def _check_positive(issues: List[str], config: Dict[str, Any], path: str) -> None:
    value = get_config_value(config, path)
    if value is not None and not value > 0:
        issues.append(f"{path} must be positive, got {value}")


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration and return list of warnings/errors.

    Args:
        config: Configuration dictionary

    Returns:
        List of warning/error messages (empty if valid)
    """
    issues = []

    for section in REQUIRED_SECTIONS:
        if section not in config:
            issues.append(f"Missing required section: {section}")

    log_level = get_config_value(config, "global.log_level")
    if log_level is not None and str(log_level).upper() not in LOG_LEVELS:
        issues.append(f"Unknown global.log_level: {log_level}")

    # Signal and attendee tuning
    _check_positive(issues, config, "signals.zexp_temperature")
    for name, horizon in (get_config_value(config, "signals.date_horizons", {}) or {}).items():
        if not horizon > 0:
            issues.append(f"signals.date_horizons.{name} must be positive, got {horizon}")
    _check_positive(issues, config, "attendee.scan_horizon_hours")
    _check_positive(issues, config, "attendee.scan_temperature_hours")
    _check_range(issues, config, "attendee.scan_max_boost", 0, 1)
    _check_range(issues, config, "attendee.availability_influence", 0, 1)

    # Engine
    _check_range(issues, config, "engine.consistency_weight", 0, 1)
    reasons_top_n = get_config_value(config, "engine.reasons_top_n")
    if reasons_top_n is not None and reasons_top_n < 1:
        issues.append(f"engine.reasons_top_n must be >= 1, got {reasons_top_n}")
    _check_positive(issues, config, "cache.ttl_seconds")

    # Batch
    for key in ("batch_size", "chunk_size", "max_workers"):
        value = get_config_value(config, f"batch.{key}")
        if value is not None and (not isinstance(value, int) or value < 1):
            issues.append(f"batch.{key} must be an integer >= 1, got {value}")
    _check_positive(issues, config, "batch.timeout_seconds")

    _check_range(issues, config, "taxonomy.network_min_share", 0, 1)

    if "global" in config and "random_seed" not in config["global"]:
        issues.append("Missing global.random_seed (required for reproducible sampling)")

    return issues


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "batch.max_workers")
        default: Default value if path doesn't exist

    Returns:
        Configuration value or default
    """
    keys = path.split(".")
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value

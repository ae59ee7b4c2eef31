"""
Configuration loading and validation.

Configuration is layered:
- `default.yaml` next to the config file (checked in)
- `config.yaml` next to the config file (local overrides)
- the explicitly requested file (treated as overrides)
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional, Tuple

import yaml

from models.config import MANAGER_PARAMETERS, Config, ObjectType
from models.errors import ConfigurationError
from .logging import VALID_LOG_LEVELS


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load layered configuration as a plain dictionary.

    Raises:
        ConfigurationError: If a layer exists but cannot be parsed.
    """
    cfg_dir = os.path.dirname(config_path)
    base_path = os.path.join(cfg_dir, "default.yaml")
    local_overrides_path = os.path.join(cfg_dir, "config.yaml")

    try:
        merged: Dict[str, Any] = {}
        if os.path.exists(base_path):
            merged = _read_yaml(base_path)
        if os.path.exists(local_overrides_path):
            merged = _deep_merge(merged, _read_yaml(local_overrides_path))
        if os.path.exists(config_path) and os.path.abspath(config_path) not in (
            os.path.abspath(base_path),
            os.path.abspath(local_overrides_path),
        ):
            merged = _deep_merge(merged, _read_yaml(config_path))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load configuration: {e}") from e

    logging.debug(f"Loaded configuration from {config_path}")
    return merged


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    observation = config.get("observation", {}) or {}
    if not isinstance(observation, dict):
        return False, "observation must be a mapping"

    for name in MANAGER_PARAMETERS + ("out_of_height_penalty", "feature_nan_penalty"):
        if name in observation and not _is_number(observation[name]):
            return False, f"observation.{name} must be a number"

    min_height = observation.get("min_height", 1.3)
    max_height = observation.get("max_height", 2.3)
    if min_height > max_height:
        return False, "observation.min_height must not exceed observation.max_height"

    for name in ("feat_sigma_u", "feat_sigma_v"):
        if name in observation and observation[name] <= 0:
            return False, f"observation.{name} must be positive"

    if observation.get("mean_horizon", 0) != 0 and observation.get("std_horizon", 0) <= 0:
        return False, "observation.std_horizon must be positive when mean_horizon is set"

    if "horizon_search_radius" in observation:
        radius = observation["horizon_search_radius"]
        if not isinstance(radius, int) or isinstance(radius, bool) or radius <= 0:
            return False, "observation.horizon_search_radius must be a positive integer"

    if "max_workers" in observation and observation["max_workers"] is not None:
        workers = observation["max_workers"]
        if not isinstance(workers, int) or isinstance(workers, bool) or workers <= 0:
            return False, "observation.max_workers must be a positive integer"

    valid_types = [t.value for t in ObjectType]
    if observation.get("object_type", ObjectType.PERSON.value) not in valid_types:
        return False, f"observation.object_type must be one of: {', '.join(valid_types)}"

    for key, prior in (observation.get("height_priors") or {}).items():
        if key not in valid_types:
            return False, f"observation.height_priors has unknown object type: {key}"
        if not isinstance(prior, dict) or not _is_number(prior.get("mean")) or not _is_number(prior.get("std")):
            return False, f"observation.height_priors.{key} must define numeric mean and std"
        if prior["mean"] <= 0:
            return False, f"observation.height_priors.{key}.mean must be positive"

    vp_file = config.get("vp_estimate_file")
    if vp_file is not None and not isinstance(vp_file, str):
        return False, "vp_estimate_file must be a string"

    if config.get("log_level", "INFO") not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def load_typed_config(config_path: str) -> Config:
    """
    Load, validate and convert configuration to the typed Config.

    Raises:
        ConfigurationError: If loading or validation fails.
    """
    raw = load_config(config_path)
    is_valid, error = validate_config(raw)
    if not is_valid:
        raise ConfigurationError(f"Configuration validation failed: {error}")
    return Config.from_dict(raw)

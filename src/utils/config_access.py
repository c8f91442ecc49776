"""
Config access helpers.

The deployment config is a single YAML document. It is loaded once per
process with load_config() and read back through the get_* helpers.
Secrets are not part of the YAML; see src.utils.env.read_secret.
"""

import copy
import os
from typing import Any, Dict, Optional

import yaml

from src.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "name": "marketgate",
    "auth": {
        "claims_max_age_seconds": 300,
        "claims_refresh_interval_seconds": 60,
        "jwt_algorithm": "HS256",
        "session_cookie_secure": False,
    },
    "services": {
        "postgres": {
            "host": "localhost",
            "port": 5432,
            "database": "marketgate",
            "user": "marketgate",
            "pool": {
                "min_connections": 1,
                "max_connections": 10,
            },
        },
        "marketplace_app": {
            "host": "0.0.0.0",
            "port": 7861,
        },
    },
}

_config: Optional[Dict[str, Any]] = None


class ConfigNotReadyError(RuntimeError):
    pass


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _find_config_file(config_path: Optional[str]) -> Optional[str]:
    if config_path:
        if not os.path.isfile(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return config_path

    search_paths = [
        os.environ.get("MARKETGATE_CONFIG"),
        os.path.join(os.getcwd(), "configs", "marketgate.yaml"),
    ]
    for path in search_paths:
        if path and os.path.isfile(path):
            return path
    return None


def load_config(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Load the deployment config and make it the process-wide config.

    Priority order:
    1. Explicit config_path
    2. MARKETGATE_CONFIG environment variable
    3. configs/marketgate.yaml under the working directory
    4. Built-in defaults

    Args:
        config_path: Optional path to a YAML config file
        overrides: Optional dict merged over the loaded values (tests, CLI flags)

    Returns:
        The merged configuration dictionary
    """
    global _config

    config_file = _find_config_file(config_path)
    loaded: Dict[str, Any] = {}
    if config_file:
        logger.info(f"Loading configuration from: {config_file}")
        with open(config_file, "r") as f:
            loaded = yaml.safe_load(f) or {}
    else:
        logger.warning("No configuration file found, using defaults")

    config = _deep_merge(DEFAULT_CONFIG, loaded)
    if overrides:
        config = _deep_merge(config, overrides)

    _config = config
    return config


def reset_config() -> None:
    """Forget the loaded config (for testing purposes)."""
    global _config
    _config = None


def get_full_config() -> Dict[str, Any]:
    if _config is None:
        raise ConfigNotReadyError("Config not loaded. Call load_config() first.")
    return _config


def get_auth_config() -> Dict[str, Any]:
    return get_full_config().get("auth", {}) or {}


def get_services_config() -> Dict[str, Any]:
    return get_full_config().get("services", {}) or {}


def get_postgres_config() -> Dict[str, Any]:
    return get_services_config().get("postgres", {}) or {}

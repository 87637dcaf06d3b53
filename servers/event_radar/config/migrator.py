"""
Configuration migrator for backwards compatibility.

Handles version migrations:
- v1 -> v2: Flat keys grouped into cache, providers, clustering and
  search sections
"""

from typing import Any

import structlog

log = structlog.get_logger(__name__)

CURRENT_VERSION = 2

# v1 flat key -> (v2 section, v2 key)
V1_KEY_MAP = {
    "cache_ttl": ("cache", "ttl_seconds"),
    "cache_max_mb": ("cache", "max_mb"),
    "cache_policy": ("cache", "policy"),
    "sweep_interval": ("cache", "sweep_interval_seconds"),
    "provider_timeout": ("providers", "timeout_seconds"),
    "retry_attempts": ("providers", "retry_attempts"),
    "cluster_radius": ("clustering", "radius"),
    "cluster_max_zoom": ("clustering", "max_zoom"),
    "min_select_zoom": ("clustering", "min_select_zoom"),
    "default_limit": ("search", "default_limit"),
    "max_limit": ("search", "max_limit"),
    "default_radius": ("search", "default_radius"),
}


def migrate_config(config: dict[str, Any]) -> dict[str, Any]:
    """
    Migrate config from any version to current.

    Args:
        config: Raw config dict (may be any version)

    Returns:
        Config dict at CURRENT_VERSION

    Raises:
        ValueError: If the config claims a version newer than supported
    """
    version = config.get("version", 1)

    if version == CURRENT_VERSION:
        return config
    if not isinstance(version, int) or version > CURRENT_VERSION or version < 1:
        raise ValueError(f"Unsupported config version: {version!r}")

    log.info("migrating_config", from_version=version, to_version=CURRENT_VERSION)

    if version == 1:
        config = _migrate_v1_to_v2(config)

    config["version"] = CURRENT_VERSION
    return config


def _migrate_v1_to_v2(config: dict[str, Any]) -> dict[str, Any]:
    """
    Migrate v1 config to v2 format.

    Changes:
    - Flat tuning keys move into their section (see V1_KEY_MAP)
    - enabled_providers (list[str]) -> providers.enabled (dict[str, bool])
    - Unknown keys are kept at the top level and left to validation
    """
    migrated: dict[str, Any] = {}
    moved = 0

    for key, value in config.items():
        if key in V1_KEY_MAP:
            section, new_key = V1_KEY_MAP[key]
            migrated.setdefault(section, {})[new_key] = value
            moved += 1
        elif key == "enabled_providers":
            migrated.setdefault("providers", {})["enabled"] = {name: True for name in value}
            moved += 1
        else:
            migrated[key] = value

    log.info("migrated_flat_keys", count=moved)
    return migrated

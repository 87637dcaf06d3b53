"""Configuration management."""

from .migrator import CURRENT_VERSION, migrate_config
from .settings import (
    AggregatorConfig,
    CacheSettings,
    ClusteringSettings,
    ProviderSettings,
    SearchSettings,
    load_config,
)

__all__ = [
    "AggregatorConfig",
    "CURRENT_VERSION",
    "CacheSettings",
    "ClusteringSettings",
    "ProviderSettings",
    "SearchSettings",
    "load_config",
    "migrate_config",
]

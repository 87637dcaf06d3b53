"""
Aggregator settings.

Defaults cover a local run. Overrides come from EVENT_RADAR_* environment
variables (from_env) or a JSON file (load_config). Provider API keys are
not part of this model; each adapter reads its own variable.
"""

import json
import os
from pathlib import Path
from typing import Literal, Optional, Union

import structlog
from pydantic import BaseModel, Field, model_validator

from .migrator import CURRENT_VERSION, migrate_config

log = structlog.get_logger(__name__)

CachePolicy = Literal["full", "page"]

PROVIDER_NAMES = ("ticketmaster", "predicthq", "rapidapi", "serpapi")


class CacheSettings(BaseModel):
    ttl_seconds: float = Field(default=300, gt=0)
    max_mb: float = Field(default=50, gt=0)
    sweep_interval_seconds: float = Field(default=60, gt=0)
    stats_interval_seconds: float = Field(default=300, gt=0)
    policy: CachePolicy = "full"

    @property
    def max_bytes(self) -> int:
        return int(self.max_mb * 1024 * 1024)


class ProviderSettings(BaseModel):
    timeout_seconds: float = Field(default=10, gt=0)
    enabled: dict[str, bool] = Field(default_factory=lambda: {name: True for name in PROVIDER_NAMES})
    circuit_failure_threshold: int = Field(default=5, ge=1)
    circuit_recovery_seconds: float = Field(default=60, gt=0)
    retry_attempts: int = Field(default=2, ge=1)

    def is_enabled(self, name: str) -> bool:
        return self.enabled.get(name, False)


class ClusteringSettings(BaseModel):
    radius: float = Field(default=40, gt=0)
    extent: int = Field(default=512, gt=0)
    min_zoom: int = Field(default=0, ge=0)
    max_zoom: int = Field(default=16, ge=0)
    min_points: int = Field(default=2, ge=2)
    min_select_zoom: float = Field(default=14, ge=0)

    @model_validator(mode="after")
    def _zoom_order(self) -> "ClusteringSettings":
        if self.min_zoom > self.max_zoom:
            raise ValueError("clustering.min_zoom must not exceed clustering.max_zoom")
        return self


class SearchSettings(BaseModel):
    default_limit: int = Field(default=100, ge=1)
    max_limit: int = Field(default=200, ge=1)
    default_radius: float = Field(default=25, gt=0)
    coordinate_precision: int = Field(default=3, ge=0)


class AggregatorConfig(BaseModel):
    """Complete server configuration (config file version 2)."""

    version: int = CURRENT_VERSION
    cache: CacheSettings = Field(default_factory=CacheSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    clustering: ClusteringSettings = Field(default_factory=ClusteringSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "AggregatorConfig":
        """Build a config from EVENT_RADAR_* variables over the defaults."""
        env = os.environ if environ is None else environ
        data: dict[str, dict] = {"cache": {}, "providers": {}, "clustering": {}, "search": {}}

        for var, (section, key) in ENV_VARS.items():
            value = env.get(var)
            if value not in (None, ""):
                data[section][key] = value

        providers = env.get("EVENT_RADAR_PROVIDERS")
        if providers:
            wanted = {p.strip().lower() for p in providers.split(",") if p.strip()}
            data["providers"]["enabled"] = {name: name in wanted for name in (*PROVIDER_NAMES, "mock")}

        return cls.model_validate(data)


ENV_VARS = {
    "EVENT_RADAR_CACHE_TTL": ("cache", "ttl_seconds"),
    "EVENT_RADAR_CACHE_MAX_MB": ("cache", "max_mb"),
    "EVENT_RADAR_CACHE_POLICY": ("cache", "policy"),
    "EVENT_RADAR_SWEEP_INTERVAL": ("cache", "sweep_interval_seconds"),
    "EVENT_RADAR_STATS_INTERVAL": ("cache", "stats_interval_seconds"),
    "EVENT_RADAR_PROVIDER_TIMEOUT": ("providers", "timeout_seconds"),
    "EVENT_RADAR_RETRY_ATTEMPTS": ("providers", "retry_attempts"),
    "EVENT_RADAR_DEFAULT_LIMIT": ("search", "default_limit"),
    "EVENT_RADAR_MAX_LIMIT": ("search", "max_limit"),
    "EVENT_RADAR_DEFAULT_RADIUS": ("search", "default_radius"),
}


def load_config(path: Union[str, Path]) -> AggregatorConfig:
    """
    Load a JSON config file of any supported version.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: On invalid JSON or an unsupported version
        pydantic.ValidationError: If migrated values are invalid
    """
    raw = json.loads(Path(path).read_text())
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")

    config = AggregatorConfig.model_validate(migrate_config(raw))
    log.info("config_loaded", path=str(path), version=config.version)
    return config

"""Tests for settings, environment overrides and config migration."""

import json

import pytest
from pydantic import ValidationError

from servers.event_radar.config import (
    CURRENT_VERSION,
    AggregatorConfig,
    ClusteringSettings,
    load_config,
    migrate_config,
)


class TestDefaults:
    """Tests for default values."""

    def test_defaults(self):
        config = AggregatorConfig()

        assert config.version == CURRENT_VERSION
        assert config.cache.ttl_seconds == 300
        assert config.cache.max_bytes == 50 * 1024 * 1024
        assert config.cache.policy == "full"
        assert config.providers.timeout_seconds == 10
        assert config.clustering.radius == 40
        assert config.search.max_limit == 200

    def test_real_providers_enabled_by_default(self):
        providers = AggregatorConfig().providers
        for name in ("ticketmaster", "predicthq", "rapidapi", "serpapi"):
            assert providers.is_enabled(name)
        assert not providers.is_enabled("mock")

    def test_zoom_order_validated(self):
        with pytest.raises(ValidationError):
            ClusteringSettings(min_zoom=10, max_zoom=5)

    def test_policy_validated(self):
        with pytest.raises(ValidationError):
            AggregatorConfig.model_validate({"cache": {"policy": "sometimes"}})


class TestFromEnv:
    """Tests for EVENT_RADAR_* overrides."""

    def test_overrides(self):
        config = AggregatorConfig.from_env({
            "EVENT_RADAR_CACHE_TTL": "60",
            "EVENT_RADAR_CACHE_POLICY": "page",
            "EVENT_RADAR_PROVIDER_TIMEOUT": "2.5",
            "EVENT_RADAR_MAX_LIMIT": "50",
        })

        assert config.cache.ttl_seconds == 60
        assert config.cache.policy == "page"
        assert config.providers.timeout_seconds == 2.5
        assert config.search.max_limit == 50

    def test_empty_values_ignored(self):
        config = AggregatorConfig.from_env({"EVENT_RADAR_CACHE_TTL": ""})
        assert config.cache.ttl_seconds == 300

    def test_provider_list(self):
        config = AggregatorConfig.from_env({"EVENT_RADAR_PROVIDERS": "mock, Ticketmaster"})

        assert config.providers.is_enabled("mock")
        assert config.providers.is_enabled("ticketmaster")
        assert not config.providers.is_enabled("serpapi")

    def test_invalid_value(self):
        with pytest.raises(ValidationError):
            AggregatorConfig.from_env({"EVENT_RADAR_CACHE_TTL": "soon"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("EVENT_RADAR_DEFAULT_RADIUS", "10")
        assert AggregatorConfig.from_env().search.default_radius == 10


class TestMigration:
    """Tests for v1 -> v2 migration."""

    def test_v1_flat_keys(self):
        migrated = migrate_config({
            "cache_ttl": 120,
            "cluster_radius": 60,
            "default_limit": 25,
            "enabled_providers": ["ticketmaster", "mock"],
        })

        assert migrated["version"] == 2
        assert migrated["cache"] == {"ttl_seconds": 120}
        assert migrated["clustering"] == {"radius": 60}
        assert migrated["search"] == {"default_limit": 25}
        assert migrated["providers"]["enabled"] == {"ticketmaster": True, "mock": True}

    def test_current_version_untouched(self):
        config = {"version": 2, "cache": {"ttl_seconds": 10}}
        assert migrate_config(config) == config

    @pytest.mark.parametrize("version", [0, 3, "2"])
    def test_unsupported_version(self, version):
        with pytest.raises(ValueError):
            migrate_config({"version": version})


class TestLoadConfig:
    """Tests for loading config files."""

    def test_v1_file(self, tmp_path):
        path = tmp_path / "event_radar.json"
        path.write_text(json.dumps({"version": 1, "provider_timeout": 3, "cache_policy": "page"}))

        config = load_config(path)

        assert config.version == 2
        assert config.providers.timeout_seconds == 3
        assert config.cache.policy == "page"

    def test_v2_file(self, tmp_path):
        path = tmp_path / "event_radar.json"
        path.write_text(json.dumps({"version": 2, "clustering": {"min_select_zoom": 12}}))

        assert load_config(path).clustering.min_select_zoom == 12

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.json")

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "event_radar.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError):
            load_config(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "event_radar.json"
        path.write_text(json.dumps({"version": 2, "cache": {"ttl_seconds": -1}}))
        with pytest.raises(ValidationError):
            load_config(path)

"""
Unit tests for configuration loading.
"""

import pytest

from pagesync.config import SyncConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "PAGESYNC_REFERENCE",
        "PAGESYNC_API_URL",
        "PAGESYNC_GATEWAY_URL",
        "PAGESYNC_DATA_DIR",
        "PAGESYNC_STATE_DB",
        "PAGESYNC_MAX_CONCURRENT",
        "PAGESYNC_INTERVAL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestSyncConfig:

    def test_defaults(self):
        config = SyncConfig()

        assert config.get_reference() is None
        assert config.get("network.api_url") == "http://localhost:8080"
        assert config.get("network.block_timeout") == 1.0
        assert config.get("network.object_timeout") == 5.0
        assert config.get_scheduler_config()["max_concurrent"] == 100
        assert config.get_watcher_config()["interval_seconds"] == 5.0
        assert config.get("network.resolve_cache_seconds") == 15

    def test_yaml_overrides_defaults(self, tmp_path):
        path = tmp_path / "pagesync.yaml"
        path.write_text(
            "reference: /ipns/abc\n"
            "scheduler:\n"
            "  max_concurrent: 8\n"
            "watcher:\n"
            "  interval_seconds: 15\n",
            encoding="utf-8",
        )

        config = SyncConfig(config_path=path)

        assert config.get_reference() == "/ipns/abc"
        assert config.get("scheduler.max_concurrent") == 8
        assert config.get("watcher.interval_seconds") == 15
        # untouched keys keep their defaults
        assert config.get("watcher.escalate_after") == 10
        assert config.get("network.gateway_url") == "http://{cid}.ipfs.localhost:8080/"

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert SyncConfig(config_path=path).get("scheduler.max_concurrent") == 100

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ValueError):
            SyncConfig(config_path=path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SyncConfig(config_path=tmp_path / "nope.yaml")

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("PAGESYNC_REFERENCE", "/ipfs/xyz")
        monkeypatch.setenv("PAGESYNC_MAX_CONCURRENT", "2")
        monkeypatch.setenv("PAGESYNC_DATA_DIR", "/data/pages")
        monkeypatch.setenv("PAGESYNC_INTERVAL", "12.5")

        config = SyncConfig()

        assert config.get_reference() == "/ipfs/xyz"
        assert config.get("scheduler.max_concurrent") == 2
        assert config.get_storage_config()["base_dir"] == "/data/pages"
        assert config.get("watcher.interval_seconds") == 12.5

    def test_invalid_env_value(self, monkeypatch):
        monkeypatch.setenv("PAGESYNC_MAX_CONCURRENT", "lots")

        with pytest.raises(ValueError):
            SyncConfig()

    def test_get_default_for_missing_key(self):
        config = SyncConfig()

        assert config.get("network.nope", "fallback") == "fallback"
        assert config.get("network.api_url.deeper", "fallback") == "fallback"

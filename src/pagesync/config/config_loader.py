"""
Configuration loader for the page synchronizer.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


logger = logging.getLogger(__name__)


# Environment variable -> (section, key, type)
ENV_OVERRIDES = {
    "PAGESYNC_API_URL": ("network", "api_url", str),
    "PAGESYNC_GATEWAY_URL": ("network", "gateway_url", str),
    "PAGESYNC_DATA_DIR": ("storage", "base_dir", str),
    "PAGESYNC_STATE_DB": ("state", "db_path", str),
    "PAGESYNC_MAX_CONCURRENT": ("scheduler", "max_concurrent", int),
    "PAGESYNC_INTERVAL": ("watcher", "interval_seconds", float),
}


class SyncConfig:
    """
    Configuration for the page synchronizer.

    Loads a YAML configuration file over built-in defaults and applies
    environment variable overrides.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)
        """
        self.config_path = Path(config_path) if config_path else None
        self.config = self._default_config()
        if self.config_path:
            self._merge(self.config, self._load_config())
        self._apply_env_overrides()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)

        if config is not None and not isinstance(config, dict):
            raise ValueError(f"Config file must contain a mapping: {self.config_path}")
        return config or {}

    def _default_config(self) -> Dict[str, Any]:
        """Return default configuration."""
        return {
            "reference": None,
            "network": {
                "api_url": "http://localhost:8080",
                "gateway_url": "http://{cid}.ipfs.localhost:8080/",
                "resolve_timeout": 1.0,
                "object_timeout": 5.0,
                "block_timeout": 1.0,
                "max_retries": 1,
                "resolve_cache_seconds": 15,
            },
            "storage": {
                "base_dir": "local/pages",
                "fsync": True,
            },
            "state": {
                "db_path": "local/state/sync_state.db",
            },
            "scheduler": {
                "max_concurrent": 100,
            },
            "watcher": {
                "interval_seconds": 5.0,
                "backoff_factor": 1.0,
                "max_interval_seconds": 60.0,
                "escalate_after": 10,
            },
        }

    def _merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> None:
        """Recursively merge ``override`` into ``base``."""
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                self._merge(base[key], value)
            else:
                base[key] = value

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        reference = os.environ.get("PAGESYNC_REFERENCE")
        if reference:
            self.config["reference"] = reference

        for env_name, (section, key, cast) in ENV_OVERRIDES.items():
            raw = os.environ.get(env_name)
            if not raw:
                continue
            try:
                value = cast(raw)
            except ValueError:
                raise ValueError(f"Invalid value for {env_name}: {raw!r}") from None
            self.config.setdefault(section, {})[key] = value

    def get_reference(self) -> Optional[str]:
        """Get the snapshot reference to synchronize."""
        return self.config.get("reference")

    def get_network_config(self) -> Dict[str, Any]:
        """Get content network configuration."""
        return self.config.get("network", {})

    def get_storage_config(self) -> Dict[str, Any]:
        """Get page storage configuration."""
        return self.config.get("storage", {})

    def get_state_config(self) -> Dict[str, Any]:
        """Get sync state configuration."""
        return self.config.get("state", {})

    def get_scheduler_config(self) -> Dict[str, Any]:
        """Get fetch scheduler configuration."""
        return self.config.get("scheduler", {})

    def get_watcher_config(self) -> Dict[str, Any]:
        """Get watcher configuration."""
        return self.config.get("watcher", {})

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

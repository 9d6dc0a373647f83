"""Configuration controller for YAML-based settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

PACKAGE_CONFIG_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class ConfigPaths:
    """Filesystem paths for configuration files."""

    config_file: Path
    override_file: Path


class ConfigController:
    """Singleton controller for loading configuration."""

    _instance: "ConfigController | None" = None

    def __init__(self, config_file: str = "default.yaml") -> None:
        if ConfigController._instance is not None:
            raise RuntimeError("You cannot create another ConfigController class")

        config_dir = Path("config")
        if not (config_dir / config_file).exists():
            config_dir = PACKAGE_CONFIG_DIR
        self.paths = ConfigPaths(
            config_file=config_dir / config_file,
            override_file=config_dir / "override.yaml",
        )
        self.config: dict[str, Any] = {}
        self.load_config()

    @classmethod
    def get_instance(cls) -> "ConfigController":
        """Return the singleton instance of the controller."""

        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def load_config(self) -> None:
        """Load configuration from default and override YAML files."""

        with self.paths.config_file.open("r", encoding="utf-8") as file:
            config = yaml.safe_load(file) or {}

        if self.paths.override_file.exists():
            with self.paths.override_file.open("r", encoding="utf-8") as file:
                override_config = yaml.safe_load(file) or {}
            if override_config:
                config = self._deep_merge(config, override_config)

        self.config = self._normalize_config(config)

    def get_config(self) -> dict[str, Any]:
        """Return the currently loaded configuration."""

        return dict(self.config)

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge dictionaries, overriding base values with override values."""

        merged = dict(base)
        for key, value in override.items():
            if (
                key in merged
                and isinstance(merged[key], dict)
                and isinstance(value, dict)
            ):
                merged[key] = self._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _normalize_config(self, config: dict[str, Any]) -> dict[str, Any]:
        """Fill in defaults and coerce types for the diagnostics sections."""

        normalized = dict(config)
        normalized["logging_level"] = str(normalized.get("logging_level", "INFO")).upper()
        normalized["file_logging_enabled"] = bool(normalized.get("file_logging_enabled", False))
        normalized["log_file"] = str(normalized.get("log_file", "./log/diagnostics.log"))

        diagnostics_cfg = dict(normalized.get("diagnostics") or {})
        diagnostics_cfg["content_limit"] = max(1, int(diagnostics_cfg.get("content_limit", 50)))
        timeout = diagnostics_cfg.get("probe_timeout_s", 60.0)
        diagnostics_cfg["probe_timeout_s"] = float(timeout) if timeout else None
        normalized["diagnostics"] = diagnostics_cfg

        storage_cfg = dict(normalized.get("storage") or {})
        storage_cfg["table_name"] = str(storage_cfg.get("table_name", "chats"))
        storage_cfg["container_name"] = str(storage_cfg.get("container_name", "documents"))
        storage_cfg["queue_name"] = str(storage_cfg.get("queue_name", "queue"))
        storage_cfg["endpoint_suffix"] = str(storage_cfg.get("endpoint_suffix", "core.windows.net"))
        storage_cfg["peek_count"] = min(32, max(1, int(storage_cfg.get("peek_count", 32))))
        normalized["storage"] = storage_cfg

        search_cfg = dict(normalized.get("search") or {})
        search_cfg["index_name"] = str(search_cfg.get("index_name", "azure-chatgpt"))
        search_cfg["api_version"] = str(search_cfg.get("api_version", "2023-11-01"))
        search_cfg["vector_field_name"] = str(search_cfg.get("vector_field_name", "embedding"))
        search_cfg["minimum_score"] = float(search_cfg.get("minimum_score", 0.81))
        search_cfg["top_k"] = max(1, int(search_cfg.get("top_k", 3)))
        normalized["search"] = search_cfg

        openai_cfg = dict(normalized.get("openai") or {})
        openai_cfg["timeout_s"] = max(1.0, float(openai_cfg.get("timeout_s", 30.0)))
        normalized["openai"] = openai_cfg
        return normalized

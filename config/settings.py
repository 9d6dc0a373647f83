"""Environment-backed settings for the Azure services under diagnosis."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Any, Mapping


@dataclass(frozen=True)
class StorageSettings:
    account_name: str
    account_key: str
    table_name: str = "chats"
    container_name: str = "documents"
    queue_name: str = "queue"
    endpoint_suffix: str = "core.windows.net"
    peek_count: int = 32


@dataclass(frozen=True)
class SearchSettings:
    name: str
    index_name: str
    api_key: str
    api_version: str
    vector_field_name: str
    admin_api_key: str = ""
    minimum_score: float = 0.81
    top_k: int = 3


@dataclass(frozen=True)
class AzureSettings:
    """Everything the server-side probes need, secrets included."""

    storage: StorageSettings
    search: SearchSettings
    document_intelligence_endpoint: str
    document_intelligence_key: str
    translator_endpoint: str
    translator_key: str
    app_insights_connection_string: str
    build_id: str | None
    probe_timeout_s: float | None
    content_limit: int
    openai_timeout_s: float
    env: Mapping[str, str]

    @classmethod
    def from_environment(
        cls,
        config: Mapping[str, Any],
        env: Mapping[str, str] | None = None,
    ) -> "AzureSettings":
        """Combine YAML defaults with secrets from the process environment."""

        env = dict(os.environ if env is None else env)
        storage_cfg = config.get("storage") or {}
        search_cfg = config.get("search") or {}
        diagnostics_cfg = config.get("diagnostics") or {}
        openai_cfg = config.get("openai") or {}

        storage = StorageSettings(
            account_name=env.get("STORAGE_ACCOUNT_NAME", ""),
            account_key=env.get("STORAGE_ACCOUNT_KEY", ""),
            table_name=storage_cfg.get("table_name", "chats"),
            container_name=storage_cfg.get("container_name", "documents"),
            queue_name=storage_cfg.get("queue_name", "queue"),
            endpoint_suffix=storage_cfg.get("endpoint_suffix", "core.windows.net"),
            peek_count=int(storage_cfg.get("peek_count", 32)),
        )
        admin_key = env.get("AZURE_SEARCH_ADMIN_KEY", "")
        search = SearchSettings(
            name=env.get("AZURE_SEARCH_NAME", ""),
            index_name=env.get("AZURE_SEARCH_INDEX_NAME") or search_cfg.get("index_name", "azure-chatgpt"),
            api_key=env.get("AZURE_SEARCH_KEY") or admin_key,
            api_version=env.get("AZURE_SEARCH_API_VERSION")
            or search_cfg.get("api_version", "2023-11-01"),
            vector_field_name=env.get("AZURE_SEARCH_VECTOR_FIELD_NAME")
            or search_cfg.get("vector_field_name", "embedding"),
            admin_api_key=admin_key,
            minimum_score=float(search_cfg.get("minimum_score", 0.81)),
            top_k=int(search_cfg.get("top_k", 3)),
        )
        return cls(
            storage=storage,
            search=search,
            document_intelligence_endpoint=env.get("AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT", ""),
            document_intelligence_key=env.get("AZURE_DOCUMENT_INTELLIGENCE_KEY", ""),
            translator_endpoint=env.get("AZURE_DOCUMENT_TRANSLATOR_ENDPOINT", ""),
            translator_key=env.get("AZURE_DOCUMENT_TRANSLATOR_KEY", ""),
            app_insights_connection_string=env.get("APPLICATIONINSIGHTS_CONNECTION_STRING", ""),
            build_id=env.get("BUILD_ID") or None,
            probe_timeout_s=diagnostics_cfg.get("probe_timeout_s", 60.0),
            content_limit=int(diagnostics_cfg.get("content_limit", 50)),
            openai_timeout_s=float(openai_cfg.get("timeout_s", 30.0)),
            env=env,
        )

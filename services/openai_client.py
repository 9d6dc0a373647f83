"""Azure OpenAI chat completions and embeddings over REST."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import os
from typing import Any, Mapping
from urllib.parse import urlparse

from core.logging import logger as LOGGER
from core.telemetry import NullTelemetryClient, track_dependency_call
from diagnostics.errors import ServiceCallError, best_error_message, describe_setting
from services.http import raise_for_status, request_json

MODEL_VARIABLE_NAMES = {
    "gpt-3.5": "GPT35",
    "gpt-4": "GPT4",
}


@dataclass(frozen=True)
class ModelConfiguration:
    """Resolved settings for one model, with the variable each came from."""

    instance_name: str | None
    instance_name_variable_name: str
    api_key: str | None
    api_key_variable_name: str
    deployment_name: str | None
    deployment_name_variable_name: str
    api_version: str | None
    api_version_variable_name: str

    @property
    def endpoint(self) -> str:
        return f"https://{self.instance_name}.openai.azure.com"


def _value_and_name(model: str, name: str, env: Mapping[str, str]) -> tuple[str | None, str]:
    model_variable_name = f"AZURE_OPENAI_{MODEL_VARIABLE_NAMES[model]}_{name}"
    base_variable_name = f"AZURE_OPENAI_{name}"
    if env.get(model_variable_name):
        return env[model_variable_name], model_variable_name
    return env.get(base_variable_name), base_variable_name


def get_model_configuration(model: str, env: Mapping[str, str] | None = None) -> ModelConfiguration:
    """Resolve per-model settings, preferring ``AZURE_OPENAI_<MODEL>_*`` variables."""

    if model not in MODEL_VARIABLE_NAMES:
        raise ValueError(f"Unknown model {model!r}")
    env = os.environ if env is None else env
    instance_name, instance_var = _value_and_name(model, "API_INSTANCE_NAME", env)
    api_key, api_key_var = _value_and_name(model, "API_KEY", env)
    deployment_name, deployment_var = _value_and_name(model, "API_DEPLOYMENT_NAME", env)
    api_version, api_version_var = _value_and_name(model, "API_VERSION", env)
    return ModelConfiguration(
        instance_name=instance_name,
        instance_name_variable_name=instance_var,
        api_key=api_key,
        api_key_variable_name=api_key_var,
        deployment_name=deployment_name,
        deployment_name_variable_name=deployment_var,
        api_version=api_version,
        api_version_variable_name=api_version_var,
    )


def get_embeddings_configuration(env: Mapping[str, str] | None = None) -> ModelConfiguration:
    """Embeddings share the instance, key and version of the base settings."""

    env = os.environ if env is None else env
    return ModelConfiguration(
        instance_name=env.get("AZURE_OPENAI_API_INSTANCE_NAME"),
        instance_name_variable_name="AZURE_OPENAI_API_INSTANCE_NAME",
        api_key=env.get("AZURE_OPENAI_API_KEY"),
        api_key_variable_name="AZURE_OPENAI_API_KEY",
        deployment_name=env.get("AZURE_OPENAI_API_EMBEDDINGS_DEPLOYMENT_NAME"),
        deployment_name_variable_name="AZURE_OPENAI_API_EMBEDDINGS_DEPLOYMENT_NAME",
        api_version=env.get("AZURE_OPENAI_API_VERSION"),
        api_version_variable_name="AZURE_OPENAI_API_VERSION",
    )


def _checklist(config: ModelConfiguration) -> str:
    return (
        "check environment variables:\n"
        f"    apiKey: {describe_setting(config.api_key, secret=True)} -- {config.api_key_variable_name}\n"
        f"    instanceName: {config.instance_name} -- {config.instance_name_variable_name}\n"
        f"    deploymentName: {config.deployment_name} -- {config.deployment_name_variable_name}\n"
        f"    apiVersion: {config.api_version} -- {config.api_version_variable_name}"
    )


class AzureOpenAIClient:
    """Calls chat completions and embeddings deployments with an api-key header."""

    def __init__(
        self,
        telemetry: NullTelemetryClient | None = None,
        env: Mapping[str, str] | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        self._telemetry = telemetry or NullTelemetryClient()
        self._env = dict(os.environ if env is None else env)
        self._timeout_s = timeout_s

    def _post(self, config: ModelConfiguration, deployment: str | None, operation: str, body: dict[str, Any]) -> Any:
        url = (
            f"{config.endpoint}/openai/deployments/{deployment}/{operation}"
            f"?api-version={config.api_version}"
        )
        response = request_json(
            "POST",
            url,
            body=body,
            headers={"api-key": config.api_key or ""},
            timeout_s=self._timeout_s,
        )
        return raise_for_status(response).body

    async def get_chat_completions(
        self,
        model: str,
        messages: list[dict[str, str]],
        **options: Any,
    ) -> dict[str, Any]:
        config = get_model_configuration(model, self._env)
        endpoint = config.endpoint
        body = {"messages": messages, **options}

        async def call() -> dict[str, Any]:
            return await asyncio.to_thread(
                self._post, config, config.deployment_name, "chat/completions", body
            )

        def usage(result: dict[str, Any]) -> dict[str, Any]:
            result_usage = (result or {}).get("usage") or {}
            return {
                "completionTokens": result_usage.get("completion_tokens"),
                "promptTokens": result_usage.get("prompt_tokens"),
                "totalTokens": result_usage.get("total_tokens"),
            }

        try:
            return await track_dependency_call(
                self._telemetry,
                "AzOpenAI",
                "getChatCompletions",
                f"{endpoint} / getChatCompletions",
                urlparse(endpoint).netloc,
                call,
                {"model": model, "deploymentName": config.deployment_name},
                usage,
            )
        except Exception as exc:
            best_message = best_error_message(exc)
            LOGGER.error(
                "Failed to get chat completion for %s model.\n  %s\n%s",
                model,
                _checklist(config),
                best_message,
            )
            raise ServiceCallError("AzOpenAI", f"{exc} - {best_message}", cause=exc) from exc

    async def embed_query(self, text: str) -> list[float]:
        vectors = await self.embed_documents([text])
        return vectors[0]

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        config = get_embeddings_configuration(self._env)

        async def call() -> list[list[float]]:
            payload = await asyncio.to_thread(
                self._post, config, config.deployment_name, "embeddings", {"input": texts}
            )
            data = sorted(payload.get("data") or [], key=lambda item: item.get("index", 0))
            return [item["embedding"] for item in data]

        try:
            return await track_dependency_call(
                self._telemetry,
                "AzOpenAI",
                "embedDocuments",
                f"{config.endpoint} / embeddings",
                urlparse(config.endpoint).netloc,
                call,
                {"deploymentName": config.deployment_name},
            )
        except Exception as exc:
            best_message = best_error_message(exc)
            LOGGER.error("Failed to get embeddings.\n  %s\n%s", _checklist(config), best_message)
            raise ServiceCallError("AzOpenAI", f"{exc} - {best_message}", cause=exc) from exc

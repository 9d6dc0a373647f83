"""Server-side probes: everything that needs secrets."""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import Any

from config.settings import AzureSettings
from core.logging import logger as LOGGER
from core.telemetry import NullTelemetryClient, flush_async
from diagnostics.models import DiagnosticResult
from diagnostics.runner import Probe, run_diagnostics
from services.app_insights import send_direct_test_message, summarize_ingestion
from services.doc_intel import DocumentIntelligence
from services.openai_client import AzureOpenAIClient
from services.storage import AzureStorage
from services.translator import DocumentTranslator
from services.vector_search import AzureCogSearch, find_relevant_documents

# Smallest valid single-page PDF, used to exercise Document Intelligence.
PDF_BASE64 = (
    "JVBERi0xLjIgCjkgMCBvYmoKPDwKPj4Kc3RyZWFtCkJULyA5IFRmKFRlc3QpJyBFVAplbmRzdHJlYW0K"
    "ZW5kb2JqCjQgMCBvYmoKPDwKL1R5cGUgL1BhZ2UKL1BhcmVudCA1IDAgUgovQ29udGVudHMgOSAwIFIK"
    "Pj4KZW5kb2JqCjUgMCBvYmoKPDwKL0tpZHMgWzQgMCBSIF0KL0NvdW50IDEKL1R5cGUgL1BhZ2VzCi9N"
    "ZWRpYUJveCBbIDAgMCA5OSA5IF0KPj4KZW5kb2JqCjMgMCBvYmoKPDwKL1BhZ2VzIDUgMCBSCi9UeXBl"
    "IC9DYXRhbG9nCj4+CmVuZG9iagp0cmFpbGVyCjw8Ci9Sb290IDMgMCBSCj4+CiUlRU9G"
)


@dataclass
class ServerServices:
    """Clients the server probes talk to."""

    storage: AzureStorage
    openai: AzureOpenAIClient
    search: AzureCogSearch
    document_intelligence: DocumentIntelligence
    translator: DocumentTranslator
    telemetry: NullTelemetryClient
    app_insights_connection_string: str | None


def build_server_services(settings: AzureSettings, telemetry: NullTelemetryClient) -> ServerServices:
    openai = AzureOpenAIClient(telemetry=telemetry, env=settings.env, timeout_s=settings.openai_timeout_s)
    return ServerServices(
        storage=AzureStorage(settings.storage),
        openai=openai,
        search=AzureCogSearch(settings.search, openai, telemetry=telemetry),
        document_intelligence=DocumentIntelligence(
            settings.document_intelligence_endpoint,
            settings.document_intelligence_key,
        ),
        translator=DocumentTranslator(settings.translator_endpoint, settings.translator_key),
        telemetry=telemetry,
        app_insights_connection_string=settings.app_insights_connection_string,
    )


async def create_resources(services: ServerServices) -> None:
    """Provision the table, container and queue. Failures are fatal."""

    LOGGER.info("Provisioning storage resources")
    await asyncio.to_thread(services.storage.create_resources)


def _first_choice_content(completion: dict[str, Any]) -> str:
    return completion["choices"][0]["message"]["content"]


def _describe_documents(documents: list[dict[str, Any]]) -> str:
    summary = f"Found {len(documents)} document(s)"
    if documents:
        summary += f" including {documents[0].get('file_name')}"
    return summary


def _describe_analysis(analysis: Any) -> str:
    paragraphs = getattr(analysis, "paragraphs", None) or []
    pages = getattr(analysis, "pages", None) or []
    return f"Found {len(paragraphs)} paragraph(s) and {len(pages)} page(s)"


def build_server_probes(services: ServerServices) -> list[Probe]:
    """Probes in display order."""

    async def send_trace() -> Any:
        if not services.telemetry.track_trace("diagnostics test message from server"):
            raise RuntimeError(
                "Application Insights is not enabled - check that connection string is correct"
            )
        return await flush_async(services.telemetry)

    return [
        Probe(
            "Azure Storage Table",
            lambda: asyncio.to_thread(services.storage.list_table_entities),
            lambda records: f"Found {len(records)} records...",
        ),
        Probe(
            "Azure Storage User Documents Blob",
            lambda: asyncio.to_thread(services.storage.list_blobs),
            lambda blobs: f"Found {len(blobs)} blobs...",
        ),
        Probe(
            "Open AI Embeddings",
            lambda: services.openai.embed_query("test query"),
            lambda vector: (
                f"Got vector of length {len(vector)} - first 3: "
                + ", ".join(str(value) for value in vector[:3])
            ),
        ),
        Probe(
            "Open AI Chat Completion GPT-3.5",
            lambda: services.openai.get_chat_completions(
                "gpt-3.5",
                [{"role": "system", "content": "what time is it?"}],
                stream=False,
            ),
            _first_choice_content,
        ),
        Probe(
            "Cognitive Search",
            lambda: find_relevant_documents(services.search, "random text"),
            _describe_documents,
        ),
        Probe(
            "Document Intelligence",
            lambda: asyncio.to_thread(
                services.document_intelligence.stringify_file,
                base64.b64decode(PDF_BASE64),
            ),
            _describe_analysis,
        ),
        Probe(
            "Document Translation Supported Formats",
            lambda: asyncio.to_thread(services.translator.get_supported_document_formats),
            lambda formats: f"Found {len(formats)} formats",
        ),
        Probe(
            "Application Insights (Direct)",
            lambda: send_direct_test_message(services.app_insights_connection_string),
            summarize_ingestion,
        ),
        Probe(
            "Application Insights (server)",
            send_trace,
            lambda _: "Sent trace message to Application Insights from server",
        ),
        Probe(
            "Job Queue",
            lambda: asyncio.to_thread(services.storage.peek_jobs),
            lambda jobs: f"Found {len(jobs)} in queue",
        ),
    ]


async def run_server_diagnostics(
    services: ServerServices,
    timeout_s: float | None = None,
    probes: list[Probe] | None = None,
) -> list[DiagnosticResult]:
    """Provision resources, then run every server probe concurrently."""

    await create_resources(services)
    if probes is None:
        probes = build_server_probes(services)
    return await run_diagnostics(probes, timeout_s=timeout_s)

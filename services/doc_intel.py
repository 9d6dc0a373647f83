"""Document Intelligence (Form Recognizer) analysis."""

from __future__ import annotations

from typing import Any

from azure.ai.formrecognizer import DocumentAnalysisClient
from azure.core.credentials import AzureKeyCredential

from core.logging import logger as LOGGER
from diagnostics.errors import ServiceCallError, best_error_message, describe_setting

DEFAULT_MODEL_ID = "prebuilt-document"


class DocumentIntelligence:
    def __init__(self, endpoint: str, key: str) -> None:
        self._endpoint = endpoint
        self._key = key

    def _client(self) -> DocumentAnalysisClient:
        return DocumentAnalysisClient(self._endpoint, AzureKeyCredential(self._key))

    def stringify_file(self, data: bytes, model_id: str = DEFAULT_MODEL_ID) -> Any:
        """Analyze ``data`` and block until the service finishes."""

        try:
            poller = self._client().begin_analyze_document(model_id, document=data)
            return poller.result()
        except Exception as exc:
            url = getattr(getattr(getattr(exc, "response", None), "request", None), "url", None)
            best_message = best_error_message(exc)
            LOGGER.error(
                "Failed to call form intelligence service.\n"
                "    check environment variables:\n"
                "        endpoint: %s -- AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT\n"
                "        key: %s -- AZURE_DOCUMENT_INTELLIGENCE_KEY\n"
                "%s %s",
                self._endpoint,
                describe_setting(self._key, secret=True),
                best_message,
                url,
            )
            raise ServiceCallError("DocumentIntelligence", f"{exc} - {best_message}", cause=exc) from exc

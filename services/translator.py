"""Document Translator batch API: supported document formats."""

from __future__ import annotations

from typing import Any

from services.http import HttpResponse, request_json

TRANSLATOR_PATH = "/translator/text/batch/v1.1"


class TranslatorError(Exception):
    """Non-200 reply from the translator, with the request context kept."""

    def __init__(self, message: str, *, method: str, url: str, status: int, code: str | None, body: Any) -> None:
        super().__init__(message)
        self.message = message
        self.method = method
        self.url = url
        self.status = status
        self.code = code
        self.body = body


def create_error(response: HttpResponse) -> TranslatorError:
    body = response.body if isinstance(response.body, dict) else {}
    error = body.get("error") or body.get("Error") or {}
    code = error.get("code") or error.get("Code")
    message = (
        error.get("message")
        or error.get("Message")
        or (f"Error code: {code}" if code else "Unknown error")
    )
    return TranslatorError(
        message,
        method=response.method,
        url=response.url,
        status=response.status,
        code=code,
        body=response.body,
    )


def parse_supported_formats(body: Any) -> list[str]:
    """Flatten every format's extensions, dropping the leading dot."""

    formats: list[str] = []
    for file_format in (body or {}).get("value", []):
        for extension in file_format.get("fileExtensions", []):
            formats.append(extension[1:] if extension.startswith(".") else extension)
    return formats


class DocumentTranslator:
    def __init__(self, endpoint: str, key: str, timeout_s: float = 30.0) -> None:
        self._base_url = f"{endpoint.rstrip('/')}{TRANSLATOR_PATH}"
        self._key = key
        self._timeout_s = timeout_s

    def get_supported_document_formats(self) -> list[str]:
        response = request_json(
            "GET",
            f"{self._base_url}/documents/formats",
            headers={"Ocp-Apim-Subscription-Key": self._key},
            timeout_s=self._timeout_s,
        )
        if response.status != 200:
            raise create_error(response)
        return parse_supported_formats(response.body)

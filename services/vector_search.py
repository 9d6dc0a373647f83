"""Vector search against an Azure Cognitive Search index.

The remote service does the scoring; this module only embeds the query,
runs the vector query, filters by score and maps the documents.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar
import uuid

from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import HttpResponseError
from azure.search.documents import SearchClient
from azure.search.documents.indexes import SearchIndexClient
from azure.search.documents.models import VectorizedQuery

from config.settings import SearchSettings
from core.logging import logger as LOGGER
from core.telemetry import NullTelemetryClient, track_dependency_call
from diagnostics.errors import ServiceCallError, describe_setting

T = TypeVar("T")

SCORE_FIELD = "@search.score"


class Embeddings(Protocol):
    async def embed_query(self, text: str) -> list[float]: ...

    async def embed_documents(self, texts: list[str]) -> list[list[float]]: ...


@dataclass(frozen=True)
class SearchFilter:
    vector_fields: str = ""
    search: str | None = None
    facets: list[str] | None = None
    filter: str | None = None
    top: int | None = None


@dataclass(frozen=True)
class DocumentIndexStats:
    document_count: int
    storage_size: int
    vector_index_size: int


class AzureCogSearch:
    """Search and indexing for one index, with query and admin keys kept apart."""

    def __init__(
        self,
        config: SearchSettings,
        embeddings: Embeddings,
        telemetry: NullTelemetryClient | None = None,
    ) -> None:
        self._config = config
        self.embeddings = embeddings
        self._telemetry = telemetry or NullTelemetryClient()

    @property
    def config(self) -> SearchSettings:
        return self._config

    @property
    def endpoint(self) -> str:
        return f"https://{self._config.name}.search.windows.net"

    def _require_admin_key(self) -> str:
        if not self._config.admin_api_key:
            raise ValueError("adminApiKey must be provided")
        return self._config.admin_api_key

    def get_search_client(self, admin: bool = False) -> SearchClient:
        api_key = self._require_admin_key() if admin else self._config.api_key
        return SearchClient(
            endpoint=self.endpoint,
            index_name=self._config.index_name,
            credential=AzureKeyCredential(api_key),
            api_version=self._config.api_version,
        )

    def get_index_client(self) -> SearchIndexClient:
        return SearchIndexClient(
            endpoint=self.endpoint,
            credential=AzureKeyCredential(self._require_admin_key()),
            api_version=self._config.api_version,
        )

    async def _track_call(self, name: str, call: Callable[[], Awaitable[T]]) -> T:
        return await track_dependency_call(
            self._telemetry,
            "AzCogSearch",
            name,
            f"{self._config.name} / {name}",
            f"{self._config.name}.search.windows.net",
            call,
        )

    async def _run(self, name: str, call: Callable[[], T]) -> T:
        """Run a blocking SDK call off the event loop, translating service errors."""

        try:
            return await asyncio.to_thread(call)
        except HttpResponseError as exc:
            self._log_checklist(name, exc)
            message = exc.message or str(exc)
            if exc.status_code:
                message = f"HTTP {exc.status_code} - {message}"
            raise ServiceCallError("AzCogSearch", message, cause=exc) from exc

    def _log_checklist(self, name: str, exc: HttpResponseError) -> None:
        c = self._config
        LOGGER.error(
            "Azure Cognitive Search call failed.\n"
            "    check environment variables:\n"
            "      name: %s -- AZURE_SEARCH_NAME\n"
            "      indexName: %s -- AZURE_SEARCH_INDEX_NAME\n"
            "      apiKey: %s -- AZURE_SEARCH_KEY\n"
            "      apiVersion: %s -- AZURE_SEARCH_API_VERSION\n"
            "      vectorFieldName: %s -- AZURE_SEARCH_VECTOR_FIELD_NAME\n"
            "      adminApiKey: %s -- AZURE_SEARCH_ADMIN_KEY\n"
            "%s: %s",
            c.name,
            c.index_name,
            describe_setting(c.api_key, secret=True),
            c.api_version,
            c.vector_field_name,
            describe_setting(c.admin_api_key, secret=True),
            name,
            exc.message or exc,
        )

    async def similarity_search(
        self,
        query: str,
        k: int | None = None,
        search_filter: SearchFilter | None = None,
    ) -> list[dict[str, Any]]:
        """Return the documents most similar to ``query``."""

        results = await self.similarity_search_with_score(query, k or 4, search_filter)
        return [doc for doc, _score in results]

    async def similarity_search_with_score(
        self,
        query: str,
        k: int | None = None,
        search_filter: SearchFilter | None = None,
    ) -> list[tuple[dict[str, Any], float]]:
        """Return the documents most similar to ``query`` with their scores."""

        embedding = await self._track_call("embedQuery", lambda: self.embeddings.embed_query(query))
        return await self.similarity_search_vector_with_score(embedding, k or 5, search_filter)

    async def similarity_search_vector_with_score(
        self,
        vector: list[float],
        k: int,
        search_filter: SearchFilter | None = None,
    ) -> list[tuple[dict[str, Any], float]]:
        search_filter = search_filter or SearchFilter()
        vector_query = VectorizedQuery(
            vector=vector,
            k_nearest_neighbors=k,
            fields=search_filter.vector_fields or self._config.vector_field_name,
        )

        def search() -> list[tuple[dict[str, Any], float]]:
            results = self.get_search_client().search(
                search_text=search_filter.search,
                vector_queries=[vector_query],
                filter=search_filter.filter,
                facets=search_filter.facets,
                top=search_filter.top or k,
            )
            return [(dict(doc), doc.get(SCORE_FIELD) or 0) for doc in results]

        return await self._track_call(
            "similaritySearchVectorWithScore",
            lambda: self._run("similaritySearchVectorWithScore", search),
        )

    async def add_documents(self, documents: list[dict[str, Any]]) -> list[str]:
        texts = [document["pageContent"] for document in documents]
        vectors = await self.embeddings.embed_documents(texts)
        return await self.add_vectors(vectors, documents)

    async def add_vectors(self, vectors: list[list[float]], documents: list[dict[str, Any]]) -> list[str]:
        """Index documents whose embeddings are already known."""

        client = self.get_search_client(admin=True)
        indexes = [
            {
                "id": uuid.uuid4().hex,
                **document,
                self._config.vector_field_name: vectors[i],
            }
            for i, document in enumerate(documents)
        ]

        def upload() -> list[str]:
            return [result.key for result in client.upload_documents(documents=indexes)]

        return await self._run("addVectors", upload)

    async def get_all_search_ids(self) -> list[str]:
        def search() -> list[str]:
            results = self.get_search_client().search(search_text="*", select=["id"], top=500)
            return [doc["id"] for doc in results]

        return await self._track_call("getAllSearchIds", lambda: self._run("getAllSearchIds", search))

    async def delete_search_items_by_ids(self, search_ids: list[str]) -> None:
        client = self.get_search_client(admin=True)

        def delete() -> None:
            client.delete_documents(documents=[{"id": search_id} for search_id in search_ids])

        await self._track_call("deleteSearchItemsByIds", lambda: self._run("deleteSearchItemsByIds", delete))

    async def get_index_stats(self) -> DocumentIndexStats:
        client = self.get_index_client()

        def stats() -> DocumentIndexStats:
            payload = client.get_index_statistics(self._config.index_name) or {}
            return DocumentIndexStats(
                document_count=int(payload.get("document_count", 0)),
                storage_size=int(payload.get("storage_size", 0)),
                vector_index_size=int(payload.get("vector_index_size", 0)),
            )

        return await self._track_call("getIndexStats", lambda: self._run("getIndexStats", stats))


async def find_relevant_documents(search: AzureCogSearch, query: str) -> list[dict[str, Any]]:
    """Top matches for ``query`` scoring strictly above the minimum score."""

    minimum_score = search.config.minimum_score
    relevant = await search.similarity_search_with_score(
        query,
        search.config.top_k,
        SearchFilter(vector_fields=search.config.vector_field_name),
    )
    return [
        {
            "page_content": f"File Name: {doc.get('metadata')}\nFile Content: {doc.get('pageContent')}",
            "file_name": doc.get("metadata"),
        }
        for doc, score in relevant
        if score > minimum_score
    ]

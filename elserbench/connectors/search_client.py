"""
Elasticsearch search client bound to one ELSER deployment.

Implements the QueryExecutor interface over the `_search` REST API with
httpx. Failures never raise out of ``execute``; they are reported in the
returned QueryResult.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from elserbench.config import settings
from elserbench.models.test_result import HitSummary, QueryResult

logger = logging.getLogger(__name__)

SOURCE_FIELDS = ["line_id", "play_name", "speaker", "text_entry"]
TEXT_PREVIEW_CHARS = 100


@dataclass(frozen=True, slots=True)
class TargetConfig:
    name: str
    url: str
    api_key: str
    model_id: str


def eis_target() -> TargetConfig:
    return TargetConfig(
        name=settings.EIS_NAME,
        url=settings.EIS_URL,
        api_key=settings.EIS_API_KEY,
        model_id=settings.EIS_MODEL_ID,
    )


def ml_node_target() -> TargetConfig:
    return TargetConfig(
        name=settings.ML_NODE_NAME,
        url=settings.ML_NODE_URL,
        api_key=settings.ML_NODE_API_KEY,
        model_id=settings.ML_NODE_MODEL_ID,
    )


class SearchError(Exception):
    """Raised internally when a search request does not produce a usable response."""


def _preview(text: Any) -> str:
    value = str(text or "")
    if len(value) > TEXT_PREVIEW_CHARS:
        return value[:TEXT_PREVIEW_CHARS] + "..."
    return value


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    err = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(err, dict):
        reason = err.get("reason") or err.get("type")
        if reason:
            return f"HTTP {response.status_code}: {reason}"
    elif err:
        return f"HTTP {response.status_code}: {err}"
    return f"HTTP {response.status_code}"


def parse_hits(payload: dict[str, Any]) -> tuple[int, list[HitSummary]]:
    hits = payload.get("hits") or {}
    total = hits.get("total")
    if isinstance(total, dict):
        count = int(total.get("value") or 0)
    else:
        count = int(total or 0)

    top: list[HitSummary] = []
    for hit in hits.get("hits") or []:
        source = hit.get("_source") or {}
        top.append(
            HitSummary(
                score=hit.get("_score"),
                play=source.get("play_name"),
                speaker=source.get("speaker"),
                text=_preview(source.get("text_entry")),
            )
        )
    return count, top


class ElserSearchClient:
    """
    QueryExecutor for one target.

    Args:
        target: Endpoint, credentials and model of the deployment.
        index: Base index name. ELSER queries go to ``<index>-enriched``.
        size: Number of hits to return.
        timeout: Request timeout in seconds.
        fallback_to_match: Retry a failed ELSER query as a plain ``match``
            query on the base index.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        target: TargetConfig,
        *,
        index: Optional[str] = None,
        size: Optional[int] = None,
        timeout: Optional[float] = None,
        fallback_to_match: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.target = target.name
        self.model_id = target.model_id
        self.index = index or settings.SEARCH_INDEX
        self.size = int(size if size is not None else settings.SEARCH_SIZE)
        self.fallback_to_match = (
            settings.SEARCH_FALLBACK_TO_MATCH
            if fallback_to_match is None
            else fallback_to_match
        )
        headers = {"Content-Type": "application/json"}
        if target.api_key:
            headers["Authorization"] = f"ApiKey {target.api_key}"
        self._client = httpx.AsyncClient(
            base_url=target.url,
            headers=headers,
            timeout=timeout if timeout is not None else settings.SEARCH_TIMEOUT_SECONDS,
            transport=transport,
        )

    @property
    def elser_index(self) -> str:
        return f"{self.index}-enriched"

    def elser_query(self, query: str) -> dict[str, Any]:
        return {
            "query": {
                "text_expansion": {
                    "ml.tokens": {
                        "model_id": self.model_id,
                        "model_text": query,
                    }
                }
            },
            "size": self.size,
            "_source": SOURCE_FIELDS,
        }

    def match_query(self, query: str) -> dict[str, Any]:
        return {
            "query": {"match": {"text_entry": query}},
            "size": self.size,
            "_source": SOURCE_FIELDS,
        }

    async def _search(self, index: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(f"/{index}/_search", json=body)
        except httpx.HTTPError as e:
            raise SearchError(f"{type(e).__name__}: {e}") from e
        if response.status_code >= 400:
            raise SearchError(_error_message(response))
        try:
            payload = response.json()
        except ValueError as e:
            raise SearchError("Invalid JSON in search response") from e
        if not isinstance(payload, dict):
            raise SearchError("Unexpected search response shape")
        return payload

    def _result(
        self,
        query: str,
        started: float,
        *,
        payload: Optional[dict[str, Any]] = None,
        error: Optional[str] = None,
        fallback: bool = False,
    ) -> QueryResult:
        duration_ms = (time.perf_counter() - started) * 1000.0
        hits, top = parse_hits(payload) if payload is not None else (0, [])
        return QueryResult(
            target=self.target,
            model_id=self.model_id,
            query=query,
            duration_ms=duration_ms,
            hits=hits,
            top_results=top,
            error=error,
            fallback=fallback,
        )

    async def execute(self, query: str) -> QueryResult:
        started = time.perf_counter()
        try:
            payload = await self._search(self.elser_index, self.elser_query(query))
            return self._result(query, started, payload=payload)
        except SearchError as e:
            elser_error = str(e)

        if not self.fallback_to_match:
            logger.debug("%s query %r failed: %s", self.target, query, elser_error)
            return self._result(query, started, error=elser_error)

        logger.warning(
            "%s ELSER query %r failed (%s); falling back to match query",
            self.target,
            query,
            elser_error,
        )
        try:
            payload = await self._search(self.index, self.match_query(query))
        except SearchError as e:
            return self._result(
                query, started, error=f"{elser_error}; fallback: {e}", fallback=True
            )
        return self._result(query, started, payload=payload, fallback=True)

    async def info(self) -> dict[str, Any]:
        """Cluster info for a connection check. Raises httpx.HTTPError on failure."""
        response = await self._client.get("/")
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()


def build_default_clients(
    **kwargs: Any,
) -> tuple[ElserSearchClient, ElserSearchClient]:
    """Clients for the EIS (A) and ML Node (B) targets configured in settings."""
    return (
        ElserSearchClient(eis_target(), **kwargs),
        ElserSearchClient(ml_node_target(), **kwargs),
    )

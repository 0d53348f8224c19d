"""
Web Search Service

Google Custom Search client used by the chat agent's web_search tool.
Identical queries are served from an in-memory cache for a configurable TTL.
"""

import json
import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel

from shared.utils.constants import (
    GOOGLE_SEARCH_URL,
    QUALITY_BASE_SCORE,
    QUALITY_SNIPPET_BONUS,
    QUALITY_SNIPPET_MIN_LENGTH,
    QUALITY_TRUSTED_BONUS,
    SEARCH_MAX_RESULTS,
    SEARCH_RECENT_RESTRICT,
    SEARCH_TIMEOUT_SECONDS,
    TRUSTED_DOMAINS,
)
from shared.utils.exceptions import SearchUnavailableException

logger = logging.getLogger(__name__)


class SearchResult(BaseModel):
    """One web search hit."""
    title: str
    url: str
    snippet: str = ""
    domain: str = ""
    quality_score: Optional[int] = None


def evaluate_source_quality(result: SearchResult) -> int:
    """Score a result 0-100: trusted domains and substantive snippets score higher."""
    score = QUALITY_BASE_SCORE
    if any(domain in result.domain for domain in TRUSTED_DOMAINS):
        score += QUALITY_TRUSTED_BONUS
    if len(result.snippet) > QUALITY_SNIPPET_MIN_LENGTH:
        score += QUALITY_SNIPPET_BONUS
    return min(score, 100)


class WebSearchService:
    """Async Google Custom Search client with a TTL cache."""

    def __init__(
        self,
        api_key: str,
        engine_id: str,
        cache_ttl_seconds: float = 15 * 60,
        timeout: float = SEARCH_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api_key = api_key
        self.engine_id = engine_id
        self.cache_ttl_seconds = cache_ttl_seconds
        self.timeout = timeout
        self._http_client = http_client
        self._clock = clock
        self._cache: Dict[str, Tuple[float, List[SearchResult]]] = {}
        self._lock = threading.Lock()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.engine_id)

    def _cache_key(self, query: str, max_results: int, include_recent: bool) -> str:
        return json.dumps({"query": query, "max_results": max_results, "recent": include_recent})

    def _cache_get(self, key: str) -> Optional[List[SearchResult]]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            stored_at, results = entry
            if self._clock() - stored_at > self.cache_ttl_seconds:
                del self._cache[key]
                return None
            return results

    def _cache_put(self, key: str, results: List[SearchResult]) -> None:
        with self._lock:
            self._cache[key] = (self._clock(), results)

    async def search(
        self,
        query: str,
        include_recent: bool = False,
        max_results: int = SEARCH_MAX_RESULTS,
    ) -> List[SearchResult]:
        """
        Search the web and score each result.

        Args:
            query: Search query
            include_recent: Restrict to content from the past year
            max_results: Number of results to request (Google caps at 10)

        Returns:
            List of SearchResult with quality_score set

        Raises:
            SearchUnavailableException: If search is not configured or the API call fails
        """
        if not self.is_configured:
            raise SearchUnavailableException("Google Search API not configured")

        key = self._cache_key(query, max_results, include_recent)
        cached = self._cache_get(key)
        if cached is not None:
            logger.info(json.dumps({"step": "WEB_SEARCH", "status": "cache_hit", "query": query}))
            return cached

        params = {
            "key": self.api_key,
            "cx": self.engine_id,
            "q": query,
            "num": str(min(max_results, 10)),
        }
        if include_recent:
            params["dateRestrict"] = SEARCH_RECENT_RESTRICT

        start_time = time.time()
        try:
            if self._http_client is not None:
                response = await self._http_client.get(GOOGLE_SEARCH_URL, params=params, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(GOOGLE_SEARCH_URL, params=params)
        except httpx.HTTPError as e:
            logger.error(json.dumps({"step": "WEB_SEARCH", "status": "failed", "error": str(e)}))
            raise SearchUnavailableException(f"Search request failed: {e}") from e

        if response.status_code != 200:
            raise SearchUnavailableException(
                f"Search API error: {response.status_code} - {response.text[:200]}"
            )

        results = []
        for item in response.json().get("items", []) or []:
            link = item.get("link", "")
            result = SearchResult(
                title=item.get("title", ""),
                url=link,
                snippet=item.get("snippet", ""),
                domain=urlparse(link).hostname or "",
            )
            result.quality_score = evaluate_source_quality(result)
            results.append(result)

        logger.info(json.dumps({
            "step": "WEB_SEARCH",
            "status": "complete",
            "query": query,
            "results": len(results),
            "duration_ms": int((time.time() - start_time) * 1000),
        }))
        self._cache_put(key, results)
        return results


_web_search_service: Optional[WebSearchService] = None


def get_web_search_service() -> WebSearchService:
    """Get or create the global web search service."""
    global _web_search_service
    if _web_search_service is None:
        from config import get_settings

        settings = get_settings()
        _web_search_service = WebSearchService(
            api_key=settings.google_search_api_key,
            engine_id=settings.google_search_engine_id,
            cache_ttl_seconds=settings.search_cache_ttl_seconds,
        )
    return _web_search_service

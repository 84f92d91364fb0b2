# listing_pipeline/ai_client.py
"""HTTP collaborators for image analysis and keyword enrichment.

The analysis endpoint answers with a JSON object shaped like
``{"success": bool, "data": {...}, "marketResearch": {...},
"categoryAnalysis": {...}, "error": str}``. Nothing about ``data`` is
trusted here; interpretation happens in `normalizer`.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol

import httpx

from .config import AI_CALL_TIMEOUT_SECONDS, AI_SERVICE_KEY, AI_SERVICE_URL, KEYWORD_SERVICE_URL
from .utils import logger


class Analyzer(Protocol):
    async def analyze(self, photo_refs: list[str], context: dict[str, Any]) -> Any: ...


class KeywordEnricher(Protocol):
    async def suggest(self, primary_photo: str, brand: Optional[str], category: str) -> list[str]: ...


class _HttpCollaborator:
    def __init__(self, url: str, api_key: Optional[str] = None,
                 timeout: float = AI_CALL_TIMEOUT_SECONDS,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _headers(self):
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, payload: dict) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.post(self.url, json=payload, headers=self._headers())
            resp.raise_for_status()
            return resp.json()


class HttpAnalysisClient(_HttpCollaborator):
    async def analyze(self, photo_refs: list[str], context: dict[str, Any]) -> dict:
        logger.info("Requesting analysis for %s (%d photo(s))", context.get("identifier"), len(photo_refs))
        body = await self._post({"images": photo_refs, "context": context})
        if not isinstance(body, dict):
            return {"success": False, "error": f"unexpected response type {type(body).__name__}"}
        return body


class HttpKeywordClient(_HttpCollaborator):
    async def suggest(self, primary_photo: str, brand: Optional[str], category: str) -> list[str]:
        body = await self._post({"image": primary_photo, "brand": brand, "category": category})
        keywords = body.get("keywords") if isinstance(body, dict) else body
        return [k for k in keywords or [] if isinstance(k, str)]


def build_analyzer() -> HttpAnalysisClient:
    if not AI_SERVICE_URL:
        raise RuntimeError("AI_SERVICE_URL not set")
    return HttpAnalysisClient(AI_SERVICE_URL, api_key=AI_SERVICE_KEY)


def build_keyword_enricher() -> Optional[HttpKeywordClient]:
    if not KEYWORD_SERVICE_URL:
        return None
    return HttpKeywordClient(KEYWORD_SERVICE_URL, api_key=AI_SERVICE_KEY)

"""
Serper API web search service for corroborating sources.
"""

from typing import Any, Dict, List, Optional

import httpx

from verifyshot.scoring.credibility import domain_from_url
from verifyshot.utils.logger import get_logger

logger = get_logger(__name__)

SERPER_URL = "https://google.serper.dev/search"
SEARCH_TIMEOUT_SECONDS = 10.0


class SerperSearchError(Exception):
    """Exception raised when Serper search fails."""
    pass


def extract_results(search_results: Dict[str, Any]) -> List[Dict[str, str]]:
    """
    Convert a raw Serper response into search result records.

    Only organic results with a link are kept; answer boxes and knowledge
    graph panels are not articles and are ignored.
    """
    organic = search_results.get("organic", [])
    if not isinstance(organic, list):
        return []

    results = []
    for item in organic:
        if not isinstance(item, dict):
            continue
        link = item.get("link") or ""
        if not link:
            continue
        results.append({
            "title": item.get("title") or "",
            "url": link,
            "domain": domain_from_url(link),
            "publishedDate": item.get("date") or "",
            "snippet": item.get("snippet") or "",
        })
    return results


class SearchService:
    """Service for performing web searches using Serper API."""

    def __init__(self, api_key: str, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.api_key = api_key
        self.http_client = http_client

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            'X-API-KEY': self.api_key,
            'Content-Type': 'application/json',
        }
        try:
            if self.http_client is not None:
                response = await self.http_client.post(SERPER_URL, json=payload, headers=headers, timeout=SEARCH_TIMEOUT_SECONDS)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(SERPER_URL, json=payload, headers=headers, timeout=SEARCH_TIMEOUT_SECONDS)
        except httpx.HTTPError as e:
            raise SerperSearchError(f"Serper API request failed: {e}")

        if response.status_code != 200:
            raise SerperSearchError(f"Serper API returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise SerperSearchError(f"Failed to parse Serper API response: {e}")
        if not isinstance(data, dict):
            raise SerperSearchError("Serper API response is not an object")
        return data

    async def search(self, query: str, limit: int = 10) -> List[Dict[str, str]]:
        """
        Search the web for a query.

        Never raises: a missing key, transport error or malformed response
        all yield an empty list.
        """
        if not self.api_key:
            logger.warning("Serper API key not configured, skipping search")
            return []
        if not query.strip():
            return []

        logger.info("Performing web search", query=query, limit=limit)
        try:
            data = await self._post({"q": query, "num": limit})
        except SerperSearchError as e:
            logger.error("Web search failed", query=query, error=str(e))
            return []

        results = extract_results(data)[:limit]
        logger.info(f"Search completed. Found {len(results)} organic results")
        return results

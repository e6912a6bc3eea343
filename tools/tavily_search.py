import os
from typing import Any, Dict, List, Optional

from loguru import logger
from tavily import AsyncTavilyClient


class TavilySearch:
    """Web search through the Tavily API (mock results without a key)."""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or os.getenv("TAVILY_API_KEY")
        self._client: Optional[AsyncTavilyClient] = None

        if not self.api_key:
            logger.warning("No Tavily API key provided, using mock search results")

    @property
    def client(self) -> AsyncTavilyClient:
        if self._client is None:
            self._client = AsyncTavilyClient(api_key=self.api_key)
        return self._client

    async def search(self, query: str, max_results: int = 10) -> List[Dict[str, Any]]:
        """
        Search the web.

        Args:
            query: Search query string
            max_results: Maximum number of results to return

        Returns:
            List of results with url, title, content. Empty when the
            provider is unavailable.
        """
        if not self.api_key:
            return [{
                "url": "",
                "title": "Mock result",
                "content": f"Mock search results for {query}",
            }]

        logger.info(f"[Tavily] Searching: {query[:60]}... (max_results={max_results})")
        try:
            response = await self.client.search(
                query=query,
                max_results=max_results,
                search_depth="basic",
            )
        except Exception as e:
            logger.error(f"[Tavily] Search failed for '{query[:60]}': {e}")
            return []

        results = [
            {
                "url": r.get("url", ""),
                "title": r.get("title", ""),
                "content": r.get("content", ""),
            }
            for r in response.get("results", [])
        ]
        logger.info(f"[Tavily] Got {len(results)} results")
        return results


def format_results(results: List[Dict[str, Any]]) -> str:
    """Flatten search results into plain text for a prompt."""
    blocks = []
    for r in results:
        lines = [r.get("title") or "", r.get("content") or ""]
        if r.get("url"):
            lines.append(f"URL: {r['url']}")
        blocks.append("\n".join(line for line in lines if line))
    return "\n\n".join(b for b in blocks if b)

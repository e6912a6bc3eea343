import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
from loguru import logger


@dataclass
class ScrapeResult:
    success: bool
    markdown: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class FirecrawlScraper:
    """Page scraping through the Firecrawl REST API."""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, timeout: float = 60):
        self.api_key = api_key or os.getenv("FIRECRAWL_API_KEY")
        self.base_url = (base_url or os.getenv("FIRECRAWL_BASE_URL", "https://api.firecrawl.dev")).rstrip("/")
        self.timeout = timeout

        if not self.api_key:
            logger.warning("No Firecrawl API key provided, page scraping disabled")

    async def scrape_page(self, url: str, only_main_content: bool = True) -> ScrapeResult:
        """
        Scrape a single page as markdown.

        Never raises for an unavailable page: sites that block scraping
        (LinkedIn answers 403 without an enterprise plan) come back as
        success=False.
        """
        if not self.api_key:
            return ScrapeResult(success=False, metadata={"sourceURL": url})

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/v1/scrape",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "url": url,
                        "formats": ["markdown"],
                        "onlyMainContent": only_main_content,
                    },
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 403:
                logger.warning(f"Scraping not permitted for {url} (403)")
            else:
                logger.error(f"Firecrawl scrape failed for {url}: {e}")
            return ScrapeResult(success=False, metadata={"sourceURL": url})
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Firecrawl scrape failed for {url}: {e}")
            return ScrapeResult(success=False, metadata={"sourceURL": url})

        data = payload.get("data") or {}
        markdown = data.get("markdown")
        return ScrapeResult(
            success=bool(payload.get("success")) and bool(markdown),
            markdown=markdown,
            metadata=data.get("metadata") or {"sourceURL": url},
        )

from typing import Optional

from tools.firecrawl import FirecrawlScraper, ScrapeResult
from tools.tavily_search import TavilySearch, format_results


class ResearchClient:
    """Unstructured-text research: web search and page scraping."""

    def __init__(self, searcher: Optional[TavilySearch] = None, scraper: Optional[FirecrawlScraper] = None):
        self.searcher = searcher or TavilySearch()
        self.scraper = scraper or FirecrawlScraper()

    async def search(self, query: str, max_results: int = 10) -> str:
        """Search the web and return the results as plain text ("" when unavailable)."""
        results = await self.searcher.search(query, max_results=max_results)
        return format_results(results)

    async def scrape_page(self, url: str) -> ScrapeResult:
        return await self.scraper.scrape_page(url)

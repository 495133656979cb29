import logging

import httpx

from gateway.exceptions.custom import FirecrawlError, RateLimitError

logger = logging.getLogger(__name__)

SCRAPE_URL = "https://api.firecrawl.dev/v1/scrape"
SEARCH_URL = "https://api.firecrawl.dev/v1/search"

# Booking.com renders reviews client-side
_WAIT_FOR_MS = 5000


class FirecrawlService:
    def __init__(self, client: httpx.AsyncClient, api_key: str):
        self._client = client
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def scrape_markdown(self, url: str) -> str:
        """Scrape a single page and return its full-page markdown."""
        payload = {
            "url": url,
            "formats": ["markdown"],
            # reviews often live outside the main content region
            "onlyMainContent": False,
            "waitFor": _WAIT_FOR_MS,
        }
        resp = await self._client.post(SCRAPE_URL, json=payload, headers=self._headers)
        data = self._check(resp, "scrape")

        if not data.get("success"):
            raise FirecrawlError(data.get("error") or "scrape unsuccessful")

        page = data.get("data") or {}
        markdown = page.get("markdown") or data.get("markdown") or ""
        logger.info("Firecrawl scraped %d chars from %s", len(markdown), url)
        return markdown

    async def search(self, query: str, limit: int = 5) -> list[dict]:
        """Web search, scraping the top results as markdown."""
        payload = {
            "query": query,
            "limit": limit,
            "scrapeOptions": {"formats": ["markdown"]},
        }
        resp = await self._client.post(SEARCH_URL, json=payload, headers=self._headers)
        data = self._check(resp, "search")

        results = data.get("data")
        if not isinstance(results, list):
            raise FirecrawlError(data.get("error") or "search returned no data")

        logger.info("Firecrawl search returned %d results for %r", len(results), query)
        return results

    @staticmethod
    def _check(resp: httpx.Response, operation: str) -> dict:
        if resp.status_code == 429:
            raise RateLimitError("Firecrawl")
        if resp.status_code >= 400:
            raise FirecrawlError(
                f"{operation} failed: {resp.text}", status_code=resp.status_code
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise FirecrawlError(f"{operation} returned invalid JSON") from exc

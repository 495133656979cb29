import logging
from typing import Protocol

import httpx

from gateway.exceptions.custom import (
    CompletionError,
    FirecrawlError,
    IngestionError,
    RateLimitError,
    SupabaseError,
)
from gateway.mappers.review_parser import extract_reviews_from_text
from gateway.schemas.reviews import (
    IngestionResponse,
    IngestionResult,
    ReviewRecord,
    ScrapedContent,
    StoredReview,
)
from gateway.services.completion import CompletionService
from gateway.services.firecrawl import FirecrawlService

logger = logging.getLogger(__name__)

MIN_PAGE_CHARS = 100
MIN_RESULT_CHARS = 50
MIN_CONTENT_CHARS = 100
MAX_CONTENT_CHARS = 120_000
CHUNK_CHARS = 40_000
PREVIEW_CHARS = 500

NOT_RETRIEVED_MESSAGE = (
    "Could not retrieve reviews. The listing site may be blocking automated "
    "access. You can add reviews manually in the admin panel."
)

_PROVIDER_ERRORS = (FirecrawlError, RateLimitError, httpx.HTTPError)
_COMPLETION_ERRORS = (CompletionError, RateLimitError)
_STORE_ERRORS = (SupabaseError, RateLimitError, httpx.HTTPError)


class ReviewStore(Protocol):
    async def find_review(self, reviewer_name: str) -> StoredReview | None: ...

    async def insert_review(self, record: ReviewRecord) -> None: ...

    async def update_review(self, review_id: str | int, record: ReviewRecord) -> None: ...


def split_chunks(text: str, size: int = CHUNK_CHARS) -> list[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


class ReviewIngestionService:
    def __init__(
        self,
        firecrawl: FirecrawlService,
        store: ReviewStore,
        *,
        completion: CompletionService | None = None,
        source_urls: list[str],
        search_query: str,
        search_limit: int = 5,
    ):
        self._firecrawl = firecrawl
        self._store = store
        self._completion = completion
        self._source_urls = source_urls
        self._search_query = search_query
        self._search_limit = search_limit

    async def run(self) -> IngestionResponse:
        scraped = await self.collect_content()
        logger.info("Collected %d chars of review content via %s", len(scraped.text), scraped.source)

        records = await self.extract(scraped.text)
        result = await self.save(records)

        logger.info(
            "Review ingestion done: %d extracted, %d added, %d updated, %d failed",
            len(records), result.added, result.updated, result.failed,
        )
        return IngestionResponse(
            reviewsAdded=result.added,
            reviewsUpdated=result.updated,
            totalExtracted=len(records),
            source=scraped.source,
        )

    async def collect_content(self) -> ScrapedContent:
        """Direct scrape first, one web search as fallback."""
        text = await self._scrape_pages()
        if len(text) >= MIN_CONTENT_CHARS:
            return ScrapedContent(text=text, source="direct_scrape")

        logger.info("Direct scrape yielded %d chars, falling back to search", len(text))
        text = await self._search()
        if len(text) < MIN_CONTENT_CHARS:
            raise IngestionError(
                NOT_RETRIEVED_MESSAGE,
                status_code=422,
                content_preview=text[:PREVIEW_CHARS] or None,
            )
        return ScrapedContent(text=text, source="search")

    async def _scrape_pages(self) -> str:
        parts: list[str] = []
        for url in self._source_urls:
            try:
                markdown = await self._firecrawl.scrape_markdown(url)
            except _PROVIDER_ERRORS:
                logger.warning("Scrape failed for %s", url, exc_info=True)
                continue
            if len(markdown) > MIN_PAGE_CHARS:
                parts.append(f"--- Reviews from {url} ---\n\n{markdown}")
            else:
                logger.info("Skipping %s: only %d chars", url, len(markdown))
        return "\n\n".join(parts)

    async def _search(self) -> str:
        try:
            results = await self._firecrawl.search(self._search_query, limit=self._search_limit)
        except _PROVIDER_ERRORS:
            logger.warning("Search fallback failed for %r", self._search_query, exc_info=True)
            return ""

        parts: list[str] = []
        for result in results:
            content = result.get("markdown") or result.get("description") or ""
            if len(content) > MIN_RESULT_CHARS:
                parts.append(f"--- Search result {result.get('url', '')} ---\n\n{content}")
        return "\n\n".join(parts)

    async def extract(self, content: str) -> list[ReviewRecord]:
        content = content[:MAX_CONTENT_CHARS]
        if self._completion is None:
            logger.warning("AI extraction not configured, using regex fallback")
            return extract_reviews_from_text(content)

        records: list[ReviewRecord] = []
        chunks = split_chunks(content)
        for i, chunk in enumerate(chunks, start=1):
            logger.info("Extracting chunk %d/%d (%d chars)", i, len(chunks), len(chunk))
            try:
                records.extend(await self._completion.extract_reviews(chunk))
            except _COMPLETION_ERRORS:
                logger.warning("AI extraction failed for chunk %d, using regex fallback", i, exc_info=True)
                records.extend(extract_reviews_from_text(chunk))
        return records

    async def save(self, records: list[ReviewRecord]) -> IngestionResult:
        """Upsert by reviewer name; the last record for a name wins."""
        result = IngestionResult()
        for record in records:
            if not record.reviewer_name.strip():
                continue
            try:
                existing = await self._store.find_review(record.reviewer_name)
                if existing is None:
                    await self._store.insert_review(record)
                    result.added += 1
                else:
                    await self._store.update_review(existing.id, record)
                    result.updated += 1
            except _STORE_ERRORS:
                logger.exception("Failed to save review by %s", record.reviewer_name)
                result.failed += 1
        return result

import logging

import httpx

from gateway.exceptions.custom import CompletionError, RateLimitError
from gateway.mappers.review_parser import find_json_array, to_review_records
from gateway.schemas.reviews import ReviewRecord

logger = logging.getLogger(__name__)

API_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"
MODEL = "google/gemini-2.5-flash"

_SYSTEM_PROMPT = """You are a data extraction assistant. Extract ALL guest reviews from the provided content about {property_name}. Do not skip ANY review. Return ONLY a valid JSON array of review objects. Each review object should have these fields:
- reviewer_name (string, required)
- reviewer_country (string, optional - full country name e.g. "Kenya", "United States", "Portugal")
- review_title (string, optional)
- positive_text (string, optional - the full positive/liked comments, do NOT truncate)
- negative_text (string, optional - the full negative/disliked comments, do NOT truncate)
- score (number 1-10, optional - the review score)
- stay_date (string, optional - e.g. "January 2025")
- room_type (string, optional)
- traveler_type (string, optional - e.g. "Couple", "Family", "Solo traveler", "Group")

If you cannot find any reviews, return an empty array [].
Return ONLY the JSON array, no other text or markdown formatting."""

_USER_PROMPT_TEMPLATE = (
    "Extract ALL guest reviews from this content about {property_name}. "
    "Do not miss any review:\n\n{content}"
)


class CompletionService:
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        *,
        api_url: str = API_URL,
        model: str = MODEL,
        property_name: str = "the property",
    ):
        self._client = client
        self._api_key = api_key
        self._api_url = api_url
        self._model = model
        self._property_name = property_name

    async def extract_reviews(self, content: str) -> list[ReviewRecord]:
        """Ask the model for the reviews in ``content``.

        Raises CompletionError when the call fails or the reply holds no
        JSON array; an empty array is a valid answer.
        """
        try:
            resp = await self._client.post(
                self._api_url,
                json={
                    "model": self._model,
                    "messages": [
                        {
                            "role": "system",
                            "content": _SYSTEM_PROMPT.format(property_name=self._property_name),
                        },
                        {
                            "role": "user",
                            "content": _USER_PROMPT_TEMPLATE.format(
                                property_name=self._property_name, content=content
                            ),
                        },
                    ],
                },
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as exc:
            raise CompletionError(f"request failed: {exc}") from exc

        if resp.status_code == 429:
            raise RateLimitError("AI gateway")
        if resp.status_code >= 400:
            raise CompletionError(resp.text, status_code=resp.status_code)

        try:
            text = resp.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise CompletionError("unexpected completion response structure") from exc

        items = find_json_array(text)
        if items is None:
            raise CompletionError("no JSON array found in completion reply")

        records = to_review_records(items)
        logger.info("AI extracted %d reviews (%d items in reply)", len(records), len(items))
        return records

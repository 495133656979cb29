from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

REVIEW_FIELDS = (
    "reviewer_country",
    "review_title",
    "positive_text",
    "negative_text",
    "score",
    "stay_date",
    "room_type",
    "traveler_type",
)


class ReviewRecord(BaseModel):
    reviewer_name: str
    reviewer_country: str | None = None
    review_title: str | None = None
    positive_text: str | None = None
    negative_text: str | None = None
    score: float | None = None  # 1-10
    stay_date: str | None = None  # free text, e.g. "January 2025"
    room_type: str | None = None
    traveler_type: str | None = None


class StoredReview(ReviewRecord):
    id: str | int


class ScrapedContent(BaseModel):
    text: str
    source: Literal["direct_scrape", "search"]


class IngestionResult(BaseModel):
    added: int = 0
    updated: int = 0
    failed: int = 0


class IngestionResponse(BaseModel):
    success: bool = True
    reviewsAdded: int
    reviewsUpdated: int
    totalExtracted: int
    source: Literal["direct_scrape", "search"]

import json
import logging
import re

from pydantic import ValidationError

from gateway.schemas.reviews import ReviewRecord

logger = logging.getLogger(__name__)

_DECODER = json.JSONDecoder()

# Line patterns for the deterministic fallback over scraped review markdown
_REVIEWER_RE = re.compile(
    r"^(?:!\[[^\]]*\]\([^)]*\)\s*|\*\*|(?:Reviewer|Reviewed by|Guest)\s*:?\s+)"
    r"(?P<name>[^*\n\d:]{2,60}?)(?:\*\*)?$",
    re.IGNORECASE,
)
_SCORE_RE = re.compile(
    r"^(?:Scored|Review score|Score|Rating)\s*:?\s*(\d{1,2}(?:[.,]\d{1,2})?)\b",
    re.IGNORECASE,
)
_LIKED_RE = re.compile(r"^(?:Liked|Positive)\s*[·:\-]\s*(.+)$", re.IGNORECASE)
_DISLIKED_RE = re.compile(r"^(?:Disliked|Negative)\s*[·:\-]\s*(.+)$", re.IGNORECASE)
_STAY_RE = re.compile(
    r"(?:Stayed in|Stayed|\d+\s+nights?\s*·)\s*:?\s*([A-Z][a-z]+\s+\d{4})",
    re.IGNORECASE,
)
_TITLE_RE = re.compile(r"^(?:#{2,6}\s+(.+)|[“\"](.+)[”\"])$")
_COUNTRY_RE = re.compile(r"^[A-Z][A-Za-z .'\-]{1,40}$")
_ROOM_RE = re.compile(
    r"\b(?:room|suite|cottage|apartment|villa|studio|house|tent|chalet|bungalow)\b",
    re.IGNORECASE,
)

_TRAVELER_TYPES = {
    "couple": "Couple",
    "family": "Family",
    "solo traveler": "Solo traveler",
    "solo traveller": "Solo traveler",
    "group": "Group",
    "group of friends": "Group",
    "business traveler": "Business traveler",
    "business traveller": "Business traveler",
}

_KEYWORDS = frozenset({"liked", "disliked", "scored", "positive", "negative", "reviews", "guest reviews"})


def find_json_array(text: str) -> list | None:
    """Return the first top-level JSON array embedded in ``text``.

    Tolerates surrounding prose and markdown fences. Returns None when no
    '[' starts a decodable array.
    """
    idx = text.find("[")
    while idx != -1:
        try:
            obj, _ = _DECODER.raw_decode(text, idx)
        except ValueError:
            idx = text.find("[", idx + 1)
            continue
        if isinstance(obj, list):
            return obj
        idx = text.find("[", idx + 1)
    return None


def _clean(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def to_review_records(items: list) -> list[ReviewRecord]:
    """Validate raw extraction items, dropping anything without a reviewer name."""
    records: list[ReviewRecord] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        cleaned = {k: _clean(v) for k, v in item.items()}
        if not cleaned.get("reviewer_name"):
            continue
        try:
            record = ReviewRecord.model_validate(cleaned)
        except ValidationError:
            logger.debug("Dropping invalid review item: %s", item)
            continue
        if record.score is not None and not 0 < record.score <= 10:
            record.score = None
        records.append(record)
    return records


def _parse_score(raw: str) -> float | None:
    try:
        score = float(raw.replace(",", "."))
    except ValueError:
        return None
    return score if 0 < score <= 10 else None


def _reviewer_name(line: str) -> str | None:
    m = _REVIEWER_RE.match(line)
    if not m:
        return None
    name = m.group("name").strip()
    if not name or name.lower() in _KEYWORDS or name.lower() in _TRAVELER_TYPES:
        return None
    return name


def _has_review_body(fields: dict) -> bool:
    return any(fields.get(k) is not None for k in ("score", "positive_text", "negative_text"))


def extract_reviews_from_text(text: str) -> list[ReviewRecord]:
    """Best-effort line scanner used when AI extraction is unavailable.

    A review starts at a reviewer line (avatar image, bold name or a
    ``Reviewer:`` label) and is kept only if a score or liked/disliked
    text follows it. Returning no records is a normal outcome.
    """
    records: list[ReviewRecord] = []
    current: dict | None = None
    expect_country = False

    def flush() -> None:
        if current is not None and _has_review_body(current):
            records.append(ReviewRecord(**current))

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue

        name = _reviewer_name(line)
        if name:
            flush()
            current = {"reviewer_name": name}
            expect_country = True
            continue
        if current is None:
            continue

        traveler = _TRAVELER_TYPES.get(line.lower())
        if traveler:
            current.setdefault("traveler_type", traveler)
            expect_country = False
            continue

        if expect_country:
            expect_country = False
            if _COUNTRY_RE.match(line) and not _ROOM_RE.search(line) and line.lower() not in _KEYWORDS:
                current["reviewer_country"] = line
                continue

        if m := _SCORE_RE.match(line):
            score = _parse_score(m.group(1))
            if score is not None:
                current["score"] = score
        elif m := _LIKED_RE.match(line):
            current["positive_text"] = m.group(1).strip()
        elif m := _DISLIKED_RE.match(line):
            current["negative_text"] = m.group(1).strip()
        elif m := _STAY_RE.search(line):
            current.setdefault("stay_date", m.group(1))
        elif m := _TITLE_RE.match(line):
            current.setdefault("review_title", (m.group(1) or m.group(2)).strip())
        elif _ROOM_RE.search(line) and len(line) <= 80 and not _has_review_body(current):
            current.setdefault("room_type", line)

    flush()
    logger.info("Regex fallback extracted %d reviews", len(records))
    return records

import logging

import httpx
from fastapi import APIRouter, Header

from gateway.dependencies import ReviewIngestionDep, SupabaseDep
from gateway.exceptions.custom import IngestionError, RateLimitError, SupabaseError
from gateway.schemas.reviews import IngestionResponse
from gateway.services.supabase import SupabaseService

logger = logging.getLogger(__name__)

router = APIRouter()


async def verify_admin(supabase: SupabaseService, authorization: str) -> None:
    try:
        user = await supabase.get_user(authorization)
    except SupabaseError as exc:
        logger.warning("Identity lookup rejected (status=%s)", exc.status_code)
        raise IngestionError("Not authenticated", status_code=401) from exc

    try:
        is_admin = await supabase.has_role(authorization, user.id)
    except (SupabaseError, RateLimitError, httpx.HTTPError):
        logger.warning("Role lookup failed for user %s", user.id, exc_info=True)
        is_admin = False

    if not is_admin:
        logger.warning("User %s is not an admin", user.id)
        raise IngestionError("Not authorized", status_code=403)


@router.post("/scrape-reviews", response_model=IngestionResponse)
async def scrape_reviews(
    supabase: SupabaseDep,
    service: ReviewIngestionDep,
    authorization: str | None = Header(default=None),
) -> IngestionResponse:
    if not authorization:
        raise IngestionError("Not authenticated", status_code=401)

    if supabase is None:
        raise IngestionError("Database is not configured", status_code=500)

    try:
        await verify_admin(supabase, authorization)

        if service is None:
            raise IngestionError("Firecrawl is not configured", status_code=500)

        return await service.run()
    except IngestionError:
        raise
    except Exception as exc:
        logger.exception("Review ingestion failed")
        raise IngestionError(str(exc) or "Unknown error", status_code=500) from exc

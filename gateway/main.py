import logging
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError

from gateway.config import Settings
from gateway.exceptions.custom import IngestionError, PaymentError
from gateway.exceptions.handlers import (
    ingestion_error_handler,
    payment_error_handler,
    validation_error_handler,
)
from gateway.routers.mpesa import router as mpesa_router
from gateway.routers.reviews import router as reviews_router
from gateway.services.completion import CompletionService
from gateway.services.firecrawl import FirecrawlService
from gateway.services.mpesa import MpesaService
from gateway.services.review_ingestion import ReviewIngestionService
from gateway.services.supabase import SupabaseService

CORS_ALLOW_HEADERS = [
    "authorization",
    "x-client-info",
    "apikey",
    "content-type",
    "x-supabase-client-platform",
    "x-supabase-client-platform-version",
    "x-supabase-client-runtime",
    "x-supabase-client-runtime-version",
]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": ", ".join(CORS_ALLOW_HEADERS),
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Each service only exists when its credentials do; the endpoints
        # report the missing configuration per request.
        app.state.mpesa_service = None
        if settings.mpesa_consumer_key and settings.mpesa_consumer_secret and settings.mpesa_passkey:
            app.state.mpesa_service = MpesaService(
                client,
                settings.mpesa_consumer_key,
                settings.mpesa_consumer_secret,
                settings.mpesa_passkey,
                base_url=settings.mpesa_base_url,
                shortcode=settings.mpesa_shortcode,
                callback_url=settings.mpesa_callback_url,
                account_reference=settings.mpesa_account_reference,
                transaction_desc=settings.mpesa_transaction_desc,
                timezone_name=settings.mpesa_timezone,
            )

        supabase: SupabaseService | None = None
        if settings.supabase_url and settings.supabase_anon_key and settings.supabase_service_role_key:
            supabase = SupabaseService(
                client,
                settings.supabase_url,
                settings.supabase_anon_key,
                settings.supabase_service_role_key,
            )
        app.state.supabase_service = supabase

        completion: CompletionService | None = None
        if settings.lovable_api_key:
            completion = CompletionService(
                client,
                settings.lovable_api_key,
                api_url=settings.ai_gateway_url,
                model=settings.ai_model,
                property_name=settings.property_name,
            )

        app.state.review_ingestion_service = None
        if settings.firecrawl_api_key and supabase is not None:
            app.state.review_ingestion_service = ReviewIngestionService(
                FirecrawlService(client, settings.firecrawl_api_key),
                supabase,
                completion=completion,
                source_urls=settings.review_source_urls,
                search_query=settings.review_search_query,
                search_limit=settings.review_search_limit,
            )

        yield


app = FastAPI(title="Rental Gateway", lifespan=lifespan)


@app.middleware("http")
async def cors_middleware(request: Request, call_next):
    # Any OPTIONS request is answered here, before routing.
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=CORS_HEADERS)

    response = await call_next(request)
    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response


app.add_exception_handler(PaymentError, payment_error_handler)
app.add_exception_handler(IngestionError, ingestion_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)

app.include_router(mpesa_router)
app.include_router(reviews_router)

from typing import Annotated

from fastapi import Depends, Request

from gateway.services.mpesa import MpesaService
from gateway.services.review_ingestion import ReviewIngestionService
from gateway.services.supabase import SupabaseService


def get_mpesa_service(request: Request) -> MpesaService | None:
    return getattr(request.app.state, "mpesa_service", None)


def get_supabase_service(request: Request) -> SupabaseService | None:
    return getattr(request.app.state, "supabase_service", None)


def get_review_ingestion_service(request: Request) -> ReviewIngestionService | None:
    return getattr(request.app.state, "review_ingestion_service", None)


MpesaDep = Annotated[MpesaService | None, Depends(get_mpesa_service)]
SupabaseDep = Annotated[SupabaseService | None, Depends(get_supabase_service)]
ReviewIngestionDep = Annotated[
    ReviewIngestionService | None, Depends(get_review_ingestion_service)
]

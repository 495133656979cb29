import logging

import httpx

from gateway.exceptions.custom import RateLimitError, SupabaseError
from gateway.schemas.reviews import REVIEW_FIELDS, ReviewRecord, StoredReview
from gateway.schemas.supabase import AuthUser

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
REVIEWS_TABLE = "reviews"
ROLES_TABLE = "user_roles"


class SupabaseService:
    """Thin PostgREST/GoTrue client for the two tables the gateway touches.

    Caller-scoped calls (identity, role lookup) use the anon key plus the
    caller's own Authorization header; writes use the service-role key.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        anon_key: str,
        service_role_key: str,
    ):
        self._client = client
        self._url = url.rstrip("/")
        self._anon_key = anon_key
        self._service_headers = {
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
            "Content-Type": "application/json",
        }

    def _caller_headers(self, authorization: str) -> dict[str, str]:
        return {"apikey": self._anon_key, "Authorization": authorization}

    @staticmethod
    def _check(resp: httpx.Response) -> None:
        if resp.status_code == 429:
            raise RateLimitError("Supabase")
        if resp.status_code >= 400:
            raise SupabaseError(resp.text, status_code=resp.status_code)

    async def get_user(self, authorization: str) -> AuthUser:
        resp = await self._client.get(
            f"{self._url}/auth/v1/user", headers=self._caller_headers(authorization)
        )
        self._check(resp)

        data = resp.json()
        if not data or not data.get("id"):
            raise SupabaseError("No user for the supplied credential", status_code=401)
        return AuthUser(**data)

    async def has_role(self, authorization: str, user_id: str, role: str = ADMIN_ROLE) -> bool:
        resp = await self._client.get(
            f"{self._url}/rest/v1/{ROLES_TABLE}",
            params={"select": "role", "user_id": f"eq.{user_id}", "role": f"eq.{role}", "limit": "1"},
            headers=self._caller_headers(authorization),
        )
        self._check(resp)
        return bool(resp.json())

    async def find_review(self, reviewer_name: str) -> StoredReview | None:
        resp = await self._client.get(
            f"{self._url}/rest/v1/{REVIEWS_TABLE}",
            params={"select": "*", "reviewer_name": f"eq.{reviewer_name}", "limit": "1"},
            headers=self._service_headers,
        )
        self._check(resp)

        rows = resp.json()
        if not rows:
            return None
        return StoredReview(**rows[0])

    async def insert_review(self, record: ReviewRecord) -> None:
        resp = await self._client.post(
            f"{self._url}/rest/v1/{REVIEWS_TABLE}",
            json=record.model_dump(),
            headers={**self._service_headers, "Prefer": "return=minimal"},
        )
        self._check(resp)
        logger.info("Inserted review by %s", record.reviewer_name)

    async def update_review(self, review_id: str | int, record: ReviewRecord) -> None:
        resp = await self._client.patch(
            f"{self._url}/rest/v1/{REVIEWS_TABLE}",
            params={"id": f"eq.{review_id}"},
            json=record.model_dump(include=set(REVIEW_FIELDS)),
            headers={**self._service_headers, "Prefer": "return=minimal"},
        )
        self._check(resp)
        logger.info("Updated review %s by %s", review_id, record.reviewer_name)

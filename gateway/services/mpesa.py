import base64
import logging
import math
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import httpx

from gateway.exceptions.custom import MpesaAuthError
from gateway.schemas.mpesa import StkPushPayload, StkPushResult

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth/v1/generate"
STK_PUSH_PATH = "/mpesa/stkpush/v1/processrequest"

TRANSACTION_TYPE = "CustomerPayBillOnline"


def build_timestamp(now: datetime | None = None, tz: str = "UTC") -> str:
    """Compact YYYYMMDDHHmmss timestamp required by the STK password scheme."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now.astimezone(ZoneInfo(tz)).strftime("%Y%m%d%H%M%S")


def build_password(shortcode: str, passkey: str, timestamp: str) -> str:
    raw = f"{shortcode}{passkey}{timestamp}"
    return base64.b64encode(raw.encode()).decode()


def whole_amount(amount: float) -> int:
    """The provider only accepts whole currency units; always round up."""
    return math.ceil(amount)


class MpesaService:
    def __init__(
        self,
        client: httpx.AsyncClient,
        consumer_key: str,
        consumer_secret: str,
        passkey: str,
        *,
        base_url: str = "https://sandbox.safaricom.co.ke",
        shortcode: str = "174379",
        callback_url: str = "",
        account_reference: str = "RafikiHouse",
        transaction_desc: str = "Booking Payment",
        timezone_name: str = "UTC",
    ):
        self._client = client
        self._consumer_key = consumer_key
        self._consumer_secret = consumer_secret
        self._passkey = passkey
        self._base_url = base_url.rstrip("/")
        self._shortcode = shortcode
        self._callback_url = callback_url
        self._account_reference = account_reference
        self._transaction_desc = transaction_desc
        self._timezone = timezone_name

    async def get_access_token(self) -> str:
        credentials = f"{self._consumer_key}:{self._consumer_secret}"
        auth = base64.b64encode(credentials.encode()).decode()

        resp = await self._client.get(
            f"{self._base_url}{TOKEN_PATH}",
            params={"grant_type": "client_credentials"},
            headers={"Authorization": f"Basic {auth}"},
        )

        if resp.status_code >= 400:
            logger.error("M-Pesa token request failed (%s): %s", resp.status_code, resp.text)
            raise MpesaAuthError(resp.text, status_code=resp.status_code)

        token = resp.json().get("access_token")
        if not token:
            raise MpesaAuthError("Token response did not include access_token")
        return token

    def build_payload(
        self, phone_number: str, amount: float, now: datetime | None = None
    ) -> StkPushPayload:
        timestamp = build_timestamp(now, self._timezone)
        return StkPushPayload(
            BusinessShortCode=self._shortcode,
            Password=build_password(self._shortcode, self._passkey, timestamp),
            Timestamp=timestamp,
            TransactionType=TRANSACTION_TYPE,
            Amount=whole_amount(amount),
            PartyA=phone_number,
            PartyB=self._shortcode,
            PhoneNumber=phone_number,
            CallBackURL=self._callback_url,
            AccountReference=self._account_reference,
            TransactionDesc=self._transaction_desc,
        )

    async def stk_push(self, phone_number: str, amount: float) -> StkPushResult:
        """Ask the provider to prompt the phone for payment.

        Returns as soon as the provider acknowledges the request; the
        customer's PIN entry is reported later through the callback URL.
        """
        token = await self.get_access_token()
        payload = self.build_payload(phone_number, amount)

        resp = await self._client.post(
            f"{self._base_url}{STK_PUSH_PATH}",
            json=payload.model_dump(),
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
        )

        body = resp.json()
        logger.info("STK push response (%s): %s", resp.status_code, body)
        return StkPushResult(status_code=resp.status_code, body=body)

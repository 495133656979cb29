import base64
import json
import re
from datetime import datetime, timezone
from unittest.mock import MagicMock

import httpx
import pytest
import respx
from httpx import Response

from gateway.exceptions.custom import MpesaAuthError
from gateway.services.mpesa import (
    STK_PUSH_PATH,
    TOKEN_PATH,
    MpesaService,
    build_password,
    build_timestamp,
    whole_amount,
)

BASE_URL = "https://sandbox.safaricom.co.ke"
TOKEN_URL = f"{BASE_URL}{TOKEN_PATH}"
STK_URL = f"{BASE_URL}{STK_PUSH_PATH}"
CALLBACK_URL = "https://example.test/functions/v1/mpesa-pay"


def _service(client: httpx.AsyncClient) -> MpesaService:
    return MpesaService(
        client,
        "key",
        "secret",
        "passkey",
        base_url=BASE_URL,
        shortcode="174379",
        callback_url=CALLBACK_URL,
    )


def test_build_timestamp_is_compact_and_matches_instant():
    now = datetime(2025, 1, 7, 9, 5, 3, 999000, tzinfo=timezone.utc)
    assert build_timestamp(now) == "20250107090503"


def test_build_timestamp_defaults_to_current_instant():
    before = datetime.now(timezone.utc).replace(microsecond=0)
    stamp = build_timestamp()
    after = datetime.now(timezone.utc)

    assert re.fullmatch(r"\d{14}", stamp)
    parsed = datetime.strptime(stamp, "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)
    assert before <= parsed <= after


def test_build_timestamp_other_timezone():
    now = datetime(2025, 1, 7, 23, 30, 0, tzinfo=timezone.utc)
    assert build_timestamp(now, "Africa/Nairobi") == "20250108023000"


def test_build_password():
    password = build_password("174379", "passkey", "20250107090503")
    assert base64.b64decode(password).decode() == "174379passkey20250107090503"


@pytest.mark.parametrize("amount,expected", [(10.2, 11), (10, 10), (0.01, 1), (2499.99, 2500)])
def test_whole_amount_rounds_up(amount, expected):
    assert whole_amount(amount) == expected


@respx.mock
async def test_get_access_token_uses_basic_auth():
    route = respx.get(TOKEN_URL).mock(
        return_value=Response(200, json={"access_token": "tok-123", "expires_in": "3599"})
    )

    async with httpx.AsyncClient() as client:
        token = await _service(client).get_access_token()

    assert token == "tok-123"
    request = route.calls.last.request
    expected = base64.b64encode(b"key:secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert request.url.params["grant_type"] == "client_credentials"


@respx.mock
async def test_get_access_token_failure_carries_body():
    respx.get(TOKEN_URL).mock(return_value=Response(400, text="Bad credentials"))

    async with httpx.AsyncClient() as client:
        with pytest.raises(MpesaAuthError) as exc_info:
            await _service(client).get_access_token()

    assert exc_info.value.message == "Bad credentials"
    assert exc_info.value.status_code == 400


def test_build_payload():
    service = MpesaService(
        MagicMock(spec=httpx.AsyncClient), "key", "secret", "passkey", callback_url=CALLBACK_URL
    )
    now = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    payload = service.build_payload("254712345678", 10.2, now=now)

    assert payload.Timestamp == "20250301120000"
    assert payload.Password == build_password("174379", "passkey", "20250301120000")
    assert payload.Amount == 11
    assert payload.PartyA == "254712345678"
    assert payload.PhoneNumber == "254712345678"
    assert payload.PartyB == "174379"
    assert payload.TransactionType == "CustomerPayBillOnline"
    assert payload.CallBackURL == CALLBACK_URL
    assert payload.AccountReference == "RafikiHouse"
    assert payload.TransactionDesc == "Booking Payment"


@respx.mock
async def test_stk_push_success():
    respx.get(TOKEN_URL).mock(return_value=Response(200, json={"access_token": "tok-123"}))
    stk = respx.post(STK_URL).mock(
        return_value=Response(200, json={
            "MerchantRequestID": "29115-34620561-1",
            "CheckoutRequestID": "ws_CO_191220191020363925",
            "ResponseCode": "0",
            "ResponseDescription": "Success. Request accepted for processing",
            "CustomerMessage": "Success. Request accepted for processing",
        })
    )

    async with httpx.AsyncClient() as client:
        result = await _service(client).stk_push("254712345678", 10.2)

    assert result.accepted
    assert result.body["ResponseCode"] == "0"
    request = stk.calls.last.request
    assert request.headers["Authorization"] == "Bearer tok-123"
    sent = json.loads(request.content)
    assert sent["Amount"] == 11
    assert re.fullmatch(r"\d{14}", sent["Timestamp"])


@respx.mock
async def test_stk_push_provider_rejection_is_passed_through():
    respx.get(TOKEN_URL).mock(return_value=Response(200, json={"access_token": "tok-123"}))
    body = {
        "requestId": "1234-5678",
        "errorCode": "400.002.02",
        "errorMessage": "Bad Request - Invalid PhoneNumber",
    }
    respx.post(STK_URL).mock(return_value=Response(400, json=body))

    async with httpx.AsyncClient() as client:
        result = await _service(client).stk_push("0712", 100)

    assert not result.accepted
    assert result.status_code == 400
    assert result.body == body


async def test_stk_push_not_sent_when_token_fails():
    with respx.mock(assert_all_called=False) as mock:
        token = mock.get(TOKEN_URL).mock(return_value=Response(401, text="invalid"))
        stk = mock.post(STK_URL).mock(return_value=Response(200, json={}))

        async with httpx.AsyncClient() as client:
            with pytest.raises(MpesaAuthError):
                await _service(client).stk_push("254712345678", 100)

        assert token.call_count == 1
        assert not stk.called

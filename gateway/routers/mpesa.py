import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from gateway.dependencies import MpesaDep
from gateway.exceptions.custom import MpesaAuthError, PaymentError
from gateway.schemas.mpesa import PaymentRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/mpesa-pay")
async def mpesa_pay(service: MpesaDep, request: PaymentRequest) -> JSONResponse:
    if not request.phoneNumber or not request.amount:
        raise PaymentError("phoneNumber and amount are required", status_code=400)

    if service is None:
        raise PaymentError("M-Pesa credentials not configured", status_code=500)

    try:
        result = await service.stk_push(request.phoneNumber, request.amount)
    except MpesaAuthError as exc:
        raise PaymentError(
            "Failed to authenticate with M-Pesa", status_code=500, details=exc.message
        ) from exc
    except Exception as exc:
        logger.exception("M-Pesa STK push failed")
        raise PaymentError(
            "Internal server error", status_code=500, details=str(exc)
        ) from exc

    return JSONResponse(
        status_code=200 if result.accepted else 400,
        content=result.body,
    )

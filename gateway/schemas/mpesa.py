from pydantic import BaseModel


class PaymentRequest(BaseModel):
    model_config = {"allow_inf_nan": False}

    phoneNumber: str | None = None
    amount: float | None = None


class StkPushPayload(BaseModel):
    BusinessShortCode: str
    Password: str
    Timestamp: str  # YYYYMMDDHHmmss
    TransactionType: str = "CustomerPayBillOnline"
    Amount: int  # whole currency units
    PartyA: str
    PartyB: str
    PhoneNumber: str
    CallBackURL: str
    AccountReference: str
    TransactionDesc: str


class StkPushResult(BaseModel):
    status_code: int
    body: dict

    @property
    def accepted(self) -> bool:
        return 200 <= self.status_code < 300

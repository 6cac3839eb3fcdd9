from pydantic import BaseModel, Field
from typing import Optional


class PaymentCreate(BaseModel):
    bookingId: str = Field(min_length=1)
    amount: int = Field(gt=0)
    # credit_card, gopay, ovo, dana, bank_transfer, qris; anything else lets the customer choose
    paymentMethod: Optional[str] = None


class PaymentCreateOut(BaseModel):
    paymentId: str
    externalInvoiceId: str
    amount: int
    status: str
    invoiceUrl: Optional[str] = None


class SimulateWebhookIn(BaseModel):
    bookingId: str = Field(min_length=1)


class WebhookOut(BaseModel):
    message: str
    paymentId: str
    bookingId: str
    paymentStatus: str
    bookingStatus: str

"""
Portal do Cliente - Payment Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional
from .common import UTCDatetime


class PaymentConfirmRequest(BaseModel):
    boleto_id: str
    amount: float = Field(..., gt=0)
    payment_date: UTCDatetime


class WebhookPayload(BaseModel):
    """Notificação do emissor: external_id é o número do boleto"""
    external_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    payment_date: UTCDatetime


class WebhookResponse(BaseModel):
    message: str
    confirmation_id: Optional[str] = None


class ConfirmationResponse(BaseModel):
    id: str
    boleto_id: str
    amount: float
    payment_date: Optional[str] = None
    state: str
    receipt_generated: bool
    invoice_generated: bool
    failure_cause: Optional[str] = None
    failed_at: Optional[str] = None
    created_at: Optional[str] = None

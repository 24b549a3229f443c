"""
Portal do Cliente - Boleto Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional
from .common import UTCDatetime

from app.models.boleto import BoletoStatus


class BoletoCreate(BaseModel):
    client_id: str
    number: str = Field(..., min_length=1, max_length=50)
    # 10 dígitos de centavos no código de barras
    amount: float = Field(..., gt=0, le=99_999_999.99)
    due_date: UTCDatetime
    description: Optional[str] = None
    send_email: bool = False


class BoletoStatusUpdate(BaseModel):
    status: BoletoStatus
    payment_date: Optional[UTCDatetime] = None
    paid_amount: Optional[float] = Field(None, gt=0)


class BoletoResponse(BaseModel):
    id: str
    number: str
    client_id: str
    client_name: Optional[str] = None
    amount: float
    due_date: Optional[str] = None
    description: Optional[str] = None
    status: str
    payment_date: Optional[str] = None
    paid_amount: Optional[float] = None
    external_id: Optional[str] = None
    barcode: Optional[str] = None
    digitable_line: Optional[str] = None
    pdf_url: Optional[str] = None
    created_at: Optional[str] = None

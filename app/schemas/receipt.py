"""
Portal do Cliente - Receipt Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional
from .common import UTCDatetime


class ReceiptCreate(BaseModel):
    client_id: str
    amount: float = Field(..., gt=0)
    description: Optional[str] = None
    number: Optional[str] = Field(None, max_length=20)
    issue_date: Optional[UTCDatetime] = None
    boleto_id: Optional[str] = None


class ReceiptResponse(BaseModel):
    id: str
    client_id: str
    client_name: Optional[str] = None
    boleto_id: Optional[str] = None
    number: str
    amount: float
    description: Optional[str] = None
    issue_date: Optional[str] = None
    pdf_path: Optional[str] = None

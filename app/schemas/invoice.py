"""
Portal do Cliente - Invoice Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional
from .common import UTCDatetime


class InvoiceCreate(BaseModel):
    client_id: str
    number: str = Field(..., min_length=1, max_length=20)
    series: str = Field("1", max_length=5)
    amount: float = Field(..., gt=0)
    description: Optional[str] = None
    issue_date: Optional[UTCDatetime] = None


class InvoiceUpdate(BaseModel):
    number: Optional[str] = Field(None, min_length=1, max_length=20)
    series: Optional[str] = Field(None, max_length=5)
    amount: Optional[float] = Field(None, gt=0)
    description: Optional[str] = None
    nfe_key: Optional[str] = Field(None, max_length=44)
    nfe_xml: Optional[str] = None


class InvoiceResponse(BaseModel):
    id: str
    client_id: str
    client_name: Optional[str] = None
    number: str
    series: str
    amount: float
    description: Optional[str] = None
    nfe_key: Optional[str] = None
    nfe_xml: Optional[str] = None
    nfe_pdf: Optional[str] = None
    issue_date: Optional[str] = None

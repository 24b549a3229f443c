from .auth import LoginRequest, RegisterRequest, UserResponse, TokenResponse
from .client import ClientCreate, ClientUpdate, ClientResponse
from .boleto import BoletoCreate, BoletoStatusUpdate, BoletoResponse
from .payment import (
    PaymentConfirmRequest,
    WebhookPayload,
    WebhookResponse,
    ConfirmationResponse
)
from .receipt import ReceiptCreate, ReceiptResponse
from .invoice import InvoiceCreate, InvoiceUpdate, InvoiceResponse
from .integration import (
    NfeConfigUpdate,
    NfeConfigResponse,
    EmailConfigCreate,
    EmailConfigResponse
)

__all__ = [
    "LoginRequest",
    "RegisterRequest",
    "UserResponse",
    "TokenResponse",
    "ClientCreate",
    "ClientUpdate",
    "ClientResponse",
    "BoletoCreate",
    "BoletoStatusUpdate",
    "BoletoResponse",
    "PaymentConfirmRequest",
    "WebhookPayload",
    "WebhookResponse",
    "ConfirmationResponse",
    "ReceiptCreate",
    "ReceiptResponse",
    "InvoiceCreate",
    "InvoiceUpdate",
    "InvoiceResponse",
    "NfeConfigUpdate",
    "NfeConfigResponse",
    "EmailConfigCreate",
    "EmailConfigResponse"
]

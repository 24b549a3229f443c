from .user import User, UserRole
from .client import Client
from .boleto import Boleto, BoletoStatus
from .payment import PaymentConfirmation, PipelineState
from .receipt import Receipt
from .invoice import Invoice
from .integration import NfeConfig, NfeEnvironment, EmailConfig

__all__ = [
    "User",
    "UserRole",
    "Client",
    "Boleto",
    "BoletoStatus",
    "PaymentConfirmation",
    "PipelineState",
    "Receipt",
    "Invoice",
    "NfeConfig",
    "NfeEnvironment",
    "EmailConfig"
]

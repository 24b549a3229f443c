from .auth import router as auth_router
from .clients import router as clients_router
from .boletos import router as boletos_router
from .payments import router as payments_router
from .receipts import router as receipts_router
from .invoices import router as invoices_router
from .nfe_config import router as nfe_config_router
from .email_config import router as email_config_router

__all__ = [
    "auth_router",
    "clients_router",
    "boletos_router",
    "payments_router",
    "receipts_router",
    "invoices_router",
    "nfe_config_router",
    "email_config_router"
]

from .config import settings, get_settings
from .security import (
    create_access_token,
    verify_access_token,
    verify_password,
    get_password_hash,
    encrypt_secret,
    decrypt_secret
)

__all__ = [
    "settings",
    "get_settings",
    "create_access_token",
    "verify_access_token",
    "verify_password",
    "get_password_hash",
    "encrypt_secret",
    "decrypt_secret"
]

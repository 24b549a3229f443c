"""
Portal do Cliente - Security
Hash de senhas, tokens JWT e criptografia de segredos em repouso
"""
import hashlib
import base64
from datetime import datetime, timedelta
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from jose import jwt, JWTError
import bcrypt

from .config import settings

ALGORITHM = "HS256"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifica password usando bcrypt"""
    return bcrypt.checkpw(
        plain_password.encode('utf-8'),
        hashed_password.encode('utf-8')
    )


def get_password_hash(password: str) -> str:
    """Gera hash bcrypt do password"""
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Cria JWT token de sessão"""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def verify_access_token(token: str) -> Optional[dict]:
    """Verifica JWT token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def _fernet() -> Fernet:
    key = base64.urlsafe_b64encode(hashlib.sha256(settings.SECRET_KEY.encode()).digest())
    return Fernet(key)


def encrypt_secret(value: str) -> str:
    """Criptografa um segredo (ex: senha do certificado A1) com chave derivada do SECRET_KEY"""
    return _fernet().encrypt(value.encode()).decode()


def decrypt_secret(token: str) -> Optional[str]:
    """Descriptografa um segredo; None se o SECRET_KEY mudou desde a gravação"""
    try:
        return _fernet().decrypt(token.encode()).decode()
    except InvalidToken:
        return None

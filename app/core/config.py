"""
Portal do Cliente - Configuration
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
import secrets
from pathlib import Path
from dotenv import load_dotenv

# Carrega .env com override para sobrescrever variáveis do sistema
env_file = Path(__file__).parent.parent.parent / ".env"
if env_file.exists():
    load_dotenv(env_file, override=True)


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Portal do Cliente"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # Database (accepts DATABASE_URL or PORTAL_DATABASE_URL)
    DATABASE_URL: Optional[str] = None
    PORTAL_DATABASE_URL: str = "sqlite+aiosqlite:///./portal.db"

    @property
    def db_url(self) -> str:
        """Returns DATABASE_URL if set, otherwise PORTAL_DATABASE_URL"""
        return self.DATABASE_URL or self.PORTAL_DATABASE_URL

    # Security
    SECRET_KEY: str = secrets.token_urlsafe(32)
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # Segredo HMAC opcional do webhook de pagamento
    WEBHOOK_SECRET: Optional[str] = None

    # Rate limiting (slowapi)
    RATE_LIMIT_ENABLED: bool = True
    LOGIN_RATE_LIMIT: str = "10/minute"
    WEBHOOK_RATE_LIMIT: str = "60/minute"

    # Admin inicial (POST /api/auth/setup)
    ADMIN_EMAIL: str = "admin@portal.com"
    ADMIN_PASSWORD: str = "change-me-in-production"

    # CORS
    CORS_ORIGINS: list = ["*"]

    # Arquivos gerados (PDFs, certificados)
    UPLOADS_DIR: str = "uploads"
    UPLOADS_URL_PREFIX: str = "/uploads"
    PDF_PAGE_COMPRESSION: bool = True
    # Certificados A1 ficam fora de UPLOADS_DIR (não são servidos)
    CERTIFICATES_DIR: str = "certificates"

    # Empresa emissora (impressa nos documentos)
    COMPANY_NAME: str = "Feitosa Soluções em Informática"
    COMPANY_DOCUMENT: str = "36.623.424/0001-60"
    COMPANY_ADDRESS: str = "Rua Coronel Jorge Teixeira"
    COMPANY_CITY_STATE: str = "69088-561 - Manaus/AM"
    COMPANY_EMAIL: str = "contato@portal.com"
    COMPANY_UF: str = "AM"

    # Boleto
    BOLETO_BANK_CODE: str = "001"
    BOLETO_BANK_NAME: str = "Banco do Brasil"

    # Email Settings (SMTP) - usado quando não há EmailConfig ativa no banco
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: str = "noreply@portal.com"
    SMTP_FROM_NAME: str = "Portal do Cliente"
    SMTP_TLS: bool = True
    SMTP_SSL: bool = False
    SMTP_TIMEOUT: int = 30

    # Notificação de erros operacionais
    ERROR_NOTIFICATION_ENABLED: bool = False
    ERROR_NOTIFICATION_EMAIL: str = "ops@portal.com"

    # App URLs (links absolutos nos emails)
    APP_URL: str = "http://localhost:3001"

    class Config:
        extra = "ignore"
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

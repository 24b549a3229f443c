"""
Portal do Cliente - Runtime Config
Snapshots imutáveis das configurações de NF-e e SMTP gravadas no banco.
A automação carrega ambos uma vez por execução e os repassa aos geradores.
"""
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .exceptions import EmailNotConfiguredError
from .security import decrypt_secret
from app.models.integration import NfeConfig, NfeEnvironment, EmailConfig

logger = logging.getLogger(__name__)


class NfeSettings(BaseModel):
    """Configuração de emissão de NF-e vigente para uma execução"""
    model_config = ConfigDict(frozen=True)

    environment: NfeEnvironment = NfeEnvironment.HOMOLOGATION
    certificate_path: Optional[str] = None

    @property
    def has_certificate(self) -> bool:
        return bool(self.certificate_path)

    @property
    def is_production(self) -> bool:
        return self.environment == NfeEnvironment.PRODUCTION

    @property
    def environment_label(self) -> str:
        return "Produção" if self.is_production else "Homologação"


class SmtpSettings(BaseModel):
    """Servidor SMTP vigente para uma execução"""
    model_config = ConfigDict(frozen=True)

    host: str
    port: int = 587
    user: Optional[str] = None
    password: Optional[str] = None
    from_address: str
    from_name: str = settings.SMTP_FROM_NAME
    secure: bool = False      # SMTP_SSL direto
    use_tls: bool = True      # STARTTLS quando não é SSL


async def get_nfe_config(db: AsyncSession) -> Optional[NfeConfig]:
    result = await db.execute(select(NfeConfig).order_by(NfeConfig.created_at).limit(1))
    return result.scalar_one_or_none()


async def get_active_email_config(db: AsyncSession) -> Optional[EmailConfig]:
    result = await db.execute(
        select(EmailConfig)
        .where(EmailConfig.active == True)
        .order_by(EmailConfig.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def load_nfe_settings(db: AsyncSession) -> NfeSettings:
    """Sem linha de configuração: homologação sem certificado"""
    config = await get_nfe_config(db)
    if not config:
        return NfeSettings()
    return NfeSettings(
        environment=NfeEnvironment(config.environment),
        certificate_path=config.certificate_path,
    )


async def load_smtp_settings(db: AsyncSession) -> SmtpSettings:
    """
    EmailConfig ativa no banco; senão SMTP_* do ambiente.
    Sem nenhuma das duas: EmailNotConfiguredError.
    """
    config = await get_active_email_config(db)
    if config:
        return SmtpSettings(
            host=config.host,
            port=config.port,
            user=config.user,
            password=decrypt_secret(config.password) if config.password else None,
            from_address=config.from_address,
            secure=bool(config.secure),
            use_tls=not config.secure,
        )

    if settings.SMTP_USER and settings.SMTP_PASSWORD:
        return SmtpSettings(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            user=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            from_address=settings.SMTP_FROM_EMAIL,
            secure=settings.SMTP_SSL,
            use_tls=settings.SMTP_TLS,
        )

    raise EmailNotConfiguredError()

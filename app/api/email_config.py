"""
Portal do Cliente - Email Config API
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update

from app.database import get_db
from app.models import User, EmailConfig
from app.schemas import EmailConfigCreate, EmailConfigResponse
from app.core import encrypt_secret
from app.core.runtime_config import get_active_email_config
from app.api.auth import get_current_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/email-config", tags=["Email Config"])


@router.get("", response_model=EmailConfigResponse)
async def get_email_config(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Configuração SMTP ativa (sem a senha)"""
    config = await get_active_email_config(db)
    if not config:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Configuração de email não encontrada"
        )
    return config.to_dict()


@router.post("", response_model=EmailConfigResponse, status_code=status.HTTP_201_CREATED)
async def save_email_config(
    body: EmailConfigCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Nova configuração passa a ser a única ativa"""
    await db.execute(
        update(EmailConfig)
        .where(EmailConfig.active == True)
        .values(active=False)
        .execution_options(synchronize_session=False)
    )

    config = EmailConfig(
        host=body.host,
        port=body.port,
        user=body.user,
        password=encrypt_secret(body.password) if body.password else None,
        from_address=body.from_address,
        secure=body.secure,
        active=True,
    )
    db.add(config)
    await db.commit()

    logger.info(f"Configuração SMTP atualizada: {config.host}:{config.port}")
    return config.to_dict()

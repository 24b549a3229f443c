"""
Portal do Cliente - NF-e Config API
Ambiente de emissão e certificado digital A1
"""
import logging
from pathlib import Path
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import User, NfeConfig, NfeEnvironment
from app.schemas import NfeConfigUpdate, NfeConfigResponse
from app.core import settings, encrypt_secret
from app.core.runtime_config import get_nfe_config
from app.core.storage import remove_file, unique_filename
from app.services.nfe_service import validate_certificate
from app.api.auth import get_current_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/nfe-config", tags=["NF-e Config"])

CERTIFICATE_EXTENSIONS = {".pfx", ".p12"}


async def _get_or_create_config(db: AsyncSession) -> NfeConfig:
    config = await get_nfe_config(db)
    if not config:
        config = NfeConfig(environment=NfeEnvironment.HOMOLOGATION.value)
        db.add(config)
    return config


@router.get("", response_model=NfeConfigResponse)
async def get_config(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Configuração atual; sem registro retorna homologação sem certificado"""
    config = await get_nfe_config(db)
    if not config:
        return NfeConfigResponse(environment=NfeEnvironment.HOMOLOGATION.value)
    return config.to_dict()


@router.put("", response_model=NfeConfigResponse)
async def update_config(
    body: NfeConfigUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """
    Atualiza ambiente e senha do certificado.
    `version` é a versão lida pelo cliente; divergente => 409.
    """
    config = await get_nfe_config(db)

    if config and body.version is not None and body.version != config.version:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Configuração alterada por outro usuário, recarregue"
        )

    if not config:
        config = NfeConfig()
        db.add(config)

    config.environment = body.environment.value
    if body.certificate_pass is not None:
        config.certificate_pass = encrypt_secret(body.certificate_pass) if body.certificate_pass else None

    await db.commit()

    logger.info(f"Configuração NF-e atualizada: {config.environment} (versão {config.version})")
    return config.to_dict()


@router.post("/certificate", response_model=NfeConfigResponse)
async def upload_certificate(
    file: UploadFile = File(...),
    password: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Envia certificado A1 (.pfx/.p12) substituindo o anterior"""
    extension = Path(file.filename or "").suffix.lower()
    if extension not in CERTIFICATE_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Certificado deve ser .pfx ou .p12"
        )

    content = await file.read()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Arquivo vazio"
        )

    # Com senha informada o certificado é aberto antes de ser salvo
    if password:
        validate_certificate(content, password)

    target = Path(settings.CERTIFICATES_DIR) / unique_filename("cert", extension)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)

    config = await _get_or_create_config(db)
    old_path = config.certificate_path
    config.certificate_path = str(target)
    if password:
        config.certificate_pass = encrypt_secret(password)

    try:
        await db.commit()
    except Exception:
        remove_file(target)
        raise

    if old_path and old_path != str(target):
        remove_file(Path(old_path))

    logger.info(f"Certificado digital atualizado: {target.name}")
    return config.to_dict()

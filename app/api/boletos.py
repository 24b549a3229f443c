"""
Portal do Cliente - Boletos API
"""
import asyncio
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.database import get_db
from app.models import User, Client, Boleto, BoletoStatus
from app.schemas import BoletoCreate, BoletoStatusUpdate, BoletoResponse
from app.core.email import EmailService
from app.core.exceptions import EmailNotConfiguredError
from app.core.runtime_config import load_smtp_settings
from app.core.storage import remove_file
from app.services.boleto_service import BoletoData, boleto_service
from app.services.common import ClientInfo
from app.api.auth import get_current_user, get_current_admin, scope_client_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/boletos", tags=["Boletos"])


async def _get_boleto_or_404(db: AsyncSession, boleto_id: str) -> Boleto:
    result = await db.execute(select(Boleto).where(Boleto.id == boleto_id))
    boleto = result.scalar_one_or_none()
    if not boleto:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Boleto não encontrado"
        )
    return boleto


async def _send_boleto_email(db: AsyncSession, boleto: Boleto):
    """Aviso ao cliente; falhas são apenas logadas"""
    try:
        mailer = EmailService(await load_smtp_settings(db))
        await asyncio.to_thread(
            mailer.send_boleto, boleto.client.email, boleto.pdf_url, boleto.amount, boleto.due_date
        )
    except EmailNotConfiguredError as e:
        logger.warning(f"Email do boleto {boleto.number} não enviado: {e.message}")
    except Exception as e:
        logger.error(f"Falha ao enviar boleto {boleto.number} para {boleto.client.email}: {e}")


@router.get("", response_model=List[BoletoResponse])
async def list_boletos(
    client_id: Optional[str] = Query(None),
    status_filter: Optional[BoletoStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Boletos do cliente logado; admin vê todos ou filtra por client_id"""
    query = select(Boleto)

    scoped = scope_client_id(user, client_id)
    if scoped:
        query = query.where(Boleto.client_id == scoped)
    if status_filter:
        query = query.where(Boleto.status == status_filter.value)

    result = await db.execute(query.order_by(Boleto.due_date.desc()))
    return [b.to_dict() for b in result.scalars().all()]


@router.post("", response_model=BoletoResponse, status_code=status.HTTP_201_CREATED)
async def create_boleto(
    body: BoletoCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Emite boleto: gera código de barras e PDF e grava tudo numa transação"""
    result = await db.execute(select(Client).where(Client.id == body.client_id))
    client = result.scalar_one_or_none()
    if not client:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cliente não encontrado"
        )

    result = await db.execute(select(Boleto).where(Boleto.number == body.number))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Número de boleto já utilizado"
        )

    generated = await boleto_service.generate(BoletoData(
        number=body.number,
        client=ClientInfo.from_client(client),
        amount=body.amount,
        due_date=body.due_date,
        description=body.description or "",
    ))

    boleto = Boleto(
        number=body.number,
        client=client,
        amount=body.amount,
        due_date=body.due_date,
        description=body.description,
        external_id=generated.external_id,
        barcode=generated.barcode,
        digitable_line=generated.digitable_line,
        pdf_url=generated.pdf_url,
    )
    db.add(boleto)
    try:
        await db.commit()
    except Exception:
        remove_file(generated.pdf_path)
        raise

    logger.info(f"Boleto {boleto.number} emitido para {client.display_name}")

    if body.send_email:
        await _send_boleto_email(db, boleto)

    return boleto.to_dict()


@router.patch("/{boleto_id}/status", response_model=BoletoResponse)
async def update_boleto_status(
    boleto_id: str,
    body: BoletoStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Altera status manualmente; PAID não é revertido"""
    boleto = await _get_boleto_or_404(db, boleto_id)

    if boleto.status == BoletoStatus.PAID.value and body.status != BoletoStatus.PAID:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Boleto já pago"
        )

    boleto.status = body.status.value
    if body.payment_date:
        boleto.payment_date = body.payment_date
    if body.paid_amount is not None:
        boleto.paid_amount = body.paid_amount

    await db.commit()
    return boleto.to_dict()


@router.post("/{boleto_id}/cancel", response_model=BoletoResponse)
async def cancel_boleto(
    boleto_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Cancela boleto pendente"""
    boleto = await _get_boleto_or_404(db, boleto_id)

    if boleto.status != BoletoStatus.PENDING.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Boleto com status {boleto.status} não pode ser cancelado"
        )

    await boleto_service.cancel(boleto.external_id)
    boleto.status = BoletoStatus.CANCELLED.value
    await db.commit()

    logger.info(f"Boleto {boleto.number} cancelado")
    return boleto.to_dict()

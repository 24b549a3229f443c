"""
Portal do Cliente - Payments API
Confirmação de pagamentos e disparo da automação pós-pagamento

FLUXO DE PAGAMENTO:
1. Admin confirma o pagamento (POST /payments/confirm) ou o emissor
   notifica via webhook (POST /payments/webhook)
2. Boleto é marcado como PAID e uma PaymentConfirmation é criada
3. Automação gera recibo e NF-e e envia ambos por email
4. Falhas deixam a confirmação em FAILED; retry via POST /confirmations/{id}/retry
"""
import hmac
import hashlib
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import (
    APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query, Request, status
)
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.database import get_db
from app.models import User, Boleto, BoletoStatus, PaymentConfirmation, PipelineState
from app.schemas import (
    PaymentConfirmRequest, WebhookPayload, WebhookResponse, ConfirmationResponse
)
from app.core.config import settings
from app.core.exceptions import PortalError
from app.core.limiter import limiter
from app.services.automation_service import automation_service
from app.api.auth import get_current_user, get_current_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


# ============================================================
# HELPERS
# ============================================================

def verify_webhook_signature(body: bytes, signature: Optional[str]) -> bool:
    """HMAC-SHA256 hex do corpo bruto com WEBHOOK_SECRET"""
    if not settings.WEBHOOK_SECRET:
        return True
    if not signature:
        return False

    expected = hmac.new(
        settings.WEBHOOK_SECRET.encode(),
        body,
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected, signature)


async def _register_payment(
    db: AsyncSession,
    boleto: Boleto,
    amount: float,
    payment_date: datetime
) -> Optional[PaymentConfirmation]:
    """
    Marca o boleto como pago e cria a confirmação numa única transação.
    Retorna None quando outro pagamento já marcou o boleto.
    """
    boleto_id, number = boleto.id, boleto.number

    result = await db.execute(Boleto.mark_paid(boleto_id, payment_date, amount))
    if result.rowcount != 1:
        await db.rollback()
        logger.info(f"Boleto {number} já foi pago por outra confirmação")
        return None

    confirmation = PaymentConfirmation(
        boleto_id=boleto_id,
        amount=amount,
        payment_date=payment_date,
    )
    db.add(confirmation)
    await db.commit()
    await db.refresh(boleto)

    logger.info(f"Pagamento do boleto {number} confirmado: {confirmation.id}")
    return confirmation


async def _get_confirmation_or_404(db: AsyncSession, confirmation_id: str) -> PaymentConfirmation:
    confirmation = await db.get(PaymentConfirmation, confirmation_id, populate_existing=True)
    if not confirmation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Confirmação não encontrada"
        )
    return confirmation


# ============================================================
# ENDPOINTS
# ============================================================

@router.post("/confirm", response_model=ConfirmationResponse, status_code=status.HTTP_201_CREATED)
async def confirm_payment(
    body: PaymentConfirmRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """
    Confirmação manual de pagamento.
    A automação roda na própria requisição; se falhar, responde
    "Erro ao confirmar pagamento" com o confirmation_id, e a confirmação
    continua registrada em FAILED.
    """
    result = await db.execute(select(Boleto).where(Boleto.id == body.boleto_id))
    boleto = result.scalar_one_or_none()

    if not boleto:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Boleto não encontrado"
        )

    if boleto.status == BoletoStatus.PAID.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Boleto já pago"
        )

    confirmation = await _register_payment(db, boleto, body.amount, body.payment_date)
    if confirmation is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Boleto já pago"
        )
    confirmation_id = confirmation.id

    # Pagamento já está gravado; falha da automação fica em FAILED para retry
    try:
        await automation_service.process_payment(db, confirmation_id)
    except PortalError as e:
        logger.error(f"Automação falhou para confirmação {confirmation_id}: {e.message}")
        return JSONResponse(
            status_code=e.status_code,
            content={
                "error": f"Erro ao confirmar pagamento: {e.message}",
                "confirmation_id": confirmation_id
            }
        )
    except Exception as e:
        logger.error(f"Erro inesperado na automação da confirmação {confirmation_id}: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Erro ao confirmar pagamento", "confirmation_id": confirmation_id}
        )

    confirmation = await _get_confirmation_or_404(db, confirmation_id)
    return confirmation.to_dict()


@router.post("/webhook", response_model=WebhookResponse)
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def payment_webhook(
    request: Request,
    payload: WebhookPayload,
    background_tasks: BackgroundTasks,
    x_webhook_signature: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
):
    """
    Notificação de pagamento do emissor.
    Responde imediatamente; recibo e NF-e são gerados em background.
    """
    raw_body = await request.body()
    if not verify_webhook_signature(raw_body, x_webhook_signature):
        logger.warning("Webhook com assinatura inválida")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Assinatura inválida"
        )

    logger.info(f"Webhook recebido para boleto {payload.external_id}")

    result = await db.execute(select(Boleto).where(Boleto.number == payload.external_id))
    boleto = result.scalar_one_or_none()

    if not boleto:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "Boleto not found"})

    # Notificações repetidas do emissor
    if boleto.status == BoletoStatus.PAID.value:
        logger.info(f"Boleto {boleto.number} já estava pago, webhook ignorado")
        return {"message": "Already paid"}

    confirmation = await _register_payment(db, boleto, payload.amount, payload.payment_date)
    if confirmation is None:
        return {"message": "Already paid"}
    background_tasks.add_task(automation_service.run_detached, confirmation.id)

    return {"message": "Webhook processed", "confirmation_id": confirmation.id}


@router.get("/confirmations", response_model=List[ConfirmationResponse])
async def list_confirmations(
    state: Optional[PipelineState] = Query(None),
    boleto_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Lista confirmações (filtro por estado para achar automações em FAILED)"""
    query = select(PaymentConfirmation)

    if state:
        query = query.where(PaymentConfirmation.state == state.value)
    if boleto_id:
        query = query.where(PaymentConfirmation.boleto_id == boleto_id)

    result = await db.execute(query.order_by(PaymentConfirmation.created_at.desc()))
    return [c.to_dict() for c in result.scalars().all()]


@router.get("/confirmations/{confirmation_id}", response_model=ConfirmationResponse)
async def get_confirmation(
    confirmation_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Estado da automação de uma confirmação (admin ou dono do boleto)"""
    confirmation = await _get_confirmation_or_404(db, confirmation_id)

    if not user.is_admin:
        boleto = await db.get(Boleto, confirmation.boleto_id)
        if not boleto or not user.client or boleto.client_id != user.client.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Acesso negado"
            )

    return confirmation.to_dict()


@router.post("/confirmations/{confirmation_id}/retry", response_model=ConfirmationResponse)
async def retry_confirmation(
    confirmation_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Retoma uma automação em FAILED a partir da etapa interrompida"""
    await _get_confirmation_or_404(db, confirmation_id)

    await automation_service.process_payment(db, confirmation_id, retry=True)

    confirmation = await _get_confirmation_or_404(db, confirmation_id)
    logger.info(f"Retry da confirmação {confirmation_id}: {confirmation.state}")
    return confirmation.to_dict()

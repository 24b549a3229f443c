"""
Portal do Cliente - Receipts API
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.database import get_db
from app.models import User, Client, Receipt
from app.schemas import ReceiptCreate, ReceiptResponse
from app.core.storage import path_from_url, remove_file
from app.services.common import ClientInfo
from app.services.receipt_service import ReceiptData, receipt_service, generate_receipt_number
from app.api.auth import get_current_user, get_current_admin, scope_client_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/receipts", tags=["Receipts"])


@router.get("", response_model=List[ReceiptResponse])
async def list_receipts(
    client_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Recibos do cliente logado; admin vê todos"""
    query = select(Receipt)

    scoped = scope_client_id(user, client_id)
    if scoped:
        query = query.where(Receipt.client_id == scoped)

    result = await db.execute(query.order_by(Receipt.issue_date.desc()))
    return [r.to_dict() for r in result.scalars().all()]


@router.post("", response_model=ReceiptResponse, status_code=status.HTTP_201_CREATED)
async def create_receipt(
    body: ReceiptCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Emite recibo avulso; número NNNN-AA gerado quando omitido"""
    result = await db.execute(select(Client).where(Client.id == body.client_id))
    client = result.scalar_one_or_none()
    if not client:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cliente não encontrado"
        )

    number = body.number or generate_receipt_number()
    description = body.description or "Serviços prestados"

    path, url = await receipt_service.render(ReceiptData(
        client=ClientInfo.from_client(client),
        amount=body.amount,
        description=description,
        number=number,
        payment_date=body.issue_date,
    ))

    receipt = Receipt(
        client=client,
        boleto_id=body.boleto_id,
        number=number,
        amount=body.amount,
        description=description,
        pdf_path=url,
    )
    if body.issue_date:
        receipt.issue_date = body.issue_date
    db.add(receipt)
    try:
        await db.commit()
    except Exception:
        remove_file(path)
        raise

    logger.info(f"Recibo {number} criado para {client.display_name}")
    return receipt.to_dict()


@router.post("/{receipt_id}/regenerate", response_model=ReceiptResponse)
async def regenerate_receipt(
    receipt_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Regrava o PDF do recibo com os dados atuais do cliente"""
    result = await db.execute(select(Receipt).where(Receipt.id == receipt_id))
    receipt = result.scalar_one_or_none()
    if not receipt:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Recibo não encontrado"
        )

    path, url = await receipt_service.render(
        ReceiptData(
            client=ClientInfo.from_client(receipt.client),
            amount=receipt.amount,
            description=receipt.description or "Serviços prestados",
            number=receipt.number,
            payment_date=receipt.issue_date,
        ),
        path=path_from_url(receipt.pdf_path),
    )

    receipt.pdf_path = url
    await db.commit()

    logger.info(f"Recibo {receipt.number} regenerado em {path}")
    return receipt.to_dict()

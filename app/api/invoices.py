"""
Portal do Cliente - Invoices API
Notas fiscais emitidas para os clientes
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.database import get_db
from app.models import User, Client, Invoice
from app.schemas import InvoiceCreate, InvoiceUpdate, InvoiceResponse
from app.core.storage import path_from_url, remove_file
from app.services.nfe_service import nfe_service
from app.api.auth import get_current_user, get_current_admin, scope_client_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["Invoices"])


async def _get_invoice_or_404(db: AsyncSession, invoice_id: str) -> Invoice:
    result = await db.execute(select(Invoice).where(Invoice.id == invoice_id))
    invoice = result.scalar_one_or_none()
    if not invoice:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Nota fiscal não encontrada"
        )
    return invoice


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(
    client_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Notas do cliente logado; admin vê todas"""
    query = select(Invoice)

    scoped = scope_client_id(user, client_id)
    if scoped:
        query = query.where(Invoice.client_id == scoped)

    result = await db.execute(query.order_by(Invoice.issue_date.desc()))
    return [i.to_dict() for i in result.scalars().all()]


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    invoice = await _get_invoice_or_404(db, invoice_id)

    if not user.is_admin and (not user.client or invoice.client_id != user.client.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso negado"
        )

    return invoice.to_dict()


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    body: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Registra nota emitida fora do portal"""
    result = await db.execute(select(Client).where(Client.id == body.client_id))
    client = result.scalar_one_or_none()
    if not client:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cliente não encontrado"
        )

    invoice = Invoice(client=client, **body.model_dump(exclude={"client_id", "issue_date"}))
    if body.issue_date:
        invoice.issue_date = body.issue_date
    db.add(invoice)
    await db.commit()

    logger.info(f"Nota {invoice.number} registrada para {client.display_name}")
    return invoice.to_dict()


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: str,
    body: InvoiceUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    invoice = await _get_invoice_or_404(db, invoice_id)

    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(invoice, field, value)

    await db.commit()
    return invoice.to_dict()


@router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Remove a nota; NF-e com chave é cancelada antes"""
    invoice = await _get_invoice_or_404(db, invoice_id)

    if invoice.nfe_key:
        await nfe_service.cancel(invoice.nfe_key, "Nota removida pelo administrador")

    pdf_path = path_from_url(invoice.nfe_pdf)
    number = invoice.number
    await db.delete(invoice)
    await db.commit()
    remove_file(pdf_path)

    logger.info(f"Nota {number} removida")
    return {"message": "Nota fiscal deletada com sucesso"}

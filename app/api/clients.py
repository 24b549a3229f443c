"""
Portal do Cliente - Clients API
CRUD de clientes; cada cliente tem um usuário CLIENT para acessar o portal
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, or_

from app.database import get_db
from app.models import (
    User, UserRole, Client, Boleto, PaymentConfirmation, Receipt, Invoice
)
from app.schemas import ClientCreate, ClientUpdate, ClientResponse
from app.core import get_password_hash
from app.api.auth import get_current_user, get_current_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["Clients"])

CLIENT_FIELDS = ("company_name", "cnpj", "cpf", "phone", "address", "city", "state", "zip_code")


async def _get_client_or_404(db: AsyncSession, client_id: str) -> Client:
    result = await db.execute(select(Client).where(Client.id == client_id))
    client = result.scalar_one_or_none()

    if not client:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cliente não encontrado"
        )
    return client


def _check_owner(user: User, client: Client):
    if not user.is_admin and client.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso negado"
        )


@router.get("", response_model=List[ClientResponse])
async def list_clients(
    search: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Lista todos os clientes"""
    query = select(Client).join(User, Client.user_id == User.id)

    if search:
        query = query.where(
            or_(
                Client.company_name.ilike(f"%{search}%"),
                User.name.ilike(f"%{search}%"),
                User.email.ilike(f"%{search}%"),
                Client.cnpj.ilike(f"%{search}%"),
                Client.cpf.ilike(f"%{search}%")
            )
        )

    query = query.order_by(Client.created_at.desc()).offset(skip).limit(limit)

    result = await db.execute(query)
    return [c.to_dict() for c in result.scalars().all()]


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Retorna um cliente (admin ou o próprio cliente)"""
    client = await _get_client_or_404(db, client_id)
    _check_owner(user, client)
    return client.to_dict()


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    body: ClientCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Cria cliente e o usuário de acesso ao portal"""
    result = await db.execute(select(User).where(User.email == body.email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email já cadastrado"
        )

    user = User(
        email=body.email,
        hashed_password=get_password_hash(body.password),
        name=body.name,
        role=UserRole.CLIENT.value
    )
    client = Client(user=user, **body.model_dump(include=set(CLIENT_FIELDS)))
    db.add(user)
    db.add(client)
    await db.commit()

    logger.info(f"Cliente criado: {client.display_name} ({user.email})")
    return client.to_dict()


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: str,
    body: ClientUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Atualiza cliente; nome e email atualizam o usuário vinculado"""
    client = await _get_client_or_404(db, client_id)
    _check_owner(user, client)

    update_data = body.model_dump(exclude_unset=True)

    if "email" in update_data and update_data["email"] != client.user.email:
        result = await db.execute(select(User).where(User.email == update_data["email"]))
        if result.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email já em uso"
            )

    for field, value in update_data.items():
        if field in ("name", "email"):
            if value:
                setattr(client.user, field, value)
        else:
            setattr(client, field, value)

    await db.commit()
    await db.refresh(client)

    return client.to_dict()


@router.delete("/{client_id}")
async def delete_client(
    client_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Remove o cliente, o usuário e todos os documentos dele"""
    client = await _get_client_or_404(db, client_id)
    user_id = client.user_id

    boleto_ids = select(Boleto.id).where(Boleto.client_id == client_id)
    await db.execute(delete(PaymentConfirmation).where(PaymentConfirmation.boleto_id.in_(boleto_ids)))
    await db.execute(delete(Receipt).where(Receipt.client_id == client_id))
    await db.execute(delete(Invoice).where(Invoice.client_id == client_id))
    await db.execute(delete(Boleto).where(Boleto.client_id == client_id))
    await db.execute(delete(Client).where(Client.id == client_id))
    await db.execute(delete(User).where(User.id == user_id))
    await db.commit()

    logger.info(f"Cliente {client_id} removido")
    return {"message": "Cliente deletado com sucesso"}

"""
Portal do Cliente - Auth API
Login, cadastro e dependências de autenticação
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.database import get_db
from app.models import User, UserRole, Client
from app.schemas import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from app.core import (
    verify_password,
    get_password_hash,
    create_access_token,
    verify_access_token,
    settings
)
from app.core.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Dependency para obter usuário autenticado"""
    payload = verify_access_token(credentials.credentials)

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido ou expirado"
        )

    result = await db.execute(
        select(User).where(User.id == payload.get("sub"))
    )
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuário inválido"
        )

    return user


async def get_current_admin(user: User = Depends(get_current_user)) -> User:
    """Dependency para rotas administrativas"""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso negado"
        )
    return user


def scope_client_id(user: User, requested: Optional[str] = None) -> Optional[str]:
    """
    Cliente cujos documentos o usuário pode listar: o próprio para CLIENT,
    o filtro opcional para ADMIN.
    """
    if user.is_admin:
        return requested
    if not user.client:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cliente não encontrado"
        )
    return user.client.id


def user_payload(user: User, client: Optional[Client]) -> dict:
    data = user.to_dict()
    data["client_id"] = client.id if client else None
    return data


def issue_token(user: User) -> str:
    return create_access_token(
        data={"sub": user.id, "email": user.email, "role": user.role}
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Cadastro; usuários CLIENT ganham um registro de cliente vazio"""
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
        role=body.role.value
    )
    client = None
    if body.role == UserRole.CLIENT:
        client = Client(user=user)
        db.add(client)
    db.add(user)
    await db.commit()

    logger.info(f"Usuário registrado: {user.email} ({user.role})")

    return TokenResponse(
        access_token=issue_token(user),
        user=UserResponse(**user_payload(user, client))
    )


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(request: Request, body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login por email e senha"""
    result = await db.execute(select(User).where(User.email == body.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(body.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciais inválidas"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuário inativo"
        )

    return TokenResponse(
        access_token=issue_token(user),
        user=UserResponse(**user_payload(user, user.client))
    )


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    """Retorna dados do usuário atual"""
    return user_payload(user, user.client)


@router.post("/setup")
async def initial_setup(db: AsyncSession = Depends(get_db)):
    """Setup inicial - cria admin padrão se não existir"""
    result = await db.execute(
        select(User).where(User.role == UserRole.ADMIN.value).limit(1)
    )
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Setup já realizado"
        )

    admin = User(
        email=settings.ADMIN_EMAIL,
        hashed_password=get_password_hash(settings.ADMIN_PASSWORD),
        name="Administrador",
        role=UserRole.ADMIN.value
    )
    db.add(admin)
    await db.commit()

    logger.info(f"Admin inicial criado: {admin.email}")
    return {"message": "Admin criado com sucesso", "email": admin.email}

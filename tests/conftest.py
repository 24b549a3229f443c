"""
Fixtures compartilhadas: banco SQLite temporário, uploads em tmp_path,
usuários/clientes de teste e cliente HTTP sobre a app ASGI.
"""
import os
import tempfile
from datetime import datetime

_TMP_DIR = tempfile.mkdtemp(prefix="portal-tests-")

# Precisa vir antes de qualquer import de app.*
os.environ.update({
    "DATABASE_URL": f"sqlite+aiosqlite:///{_TMP_DIR}/test.db",
    "UPLOADS_DIR": os.path.join(_TMP_DIR, "uploads"),
    "CERTIFICATES_DIR": os.path.join(_TMP_DIR, "certificates"),
    "SECRET_KEY": "test-secret-key-portal",
    "PDF_PAGE_COMPRESSION": "false",
    "RATE_LIMIT_ENABLED": "false",
    "ERROR_NOTIFICATION_ENABLED": "false",
})
for name in ("WEBHOOK_SECRET", "SMTP_USER", "SMTP_PASSWORD"):
    os.environ.pop(name, None)

import pytest
from httpx import ASGITransport, AsyncClient

from app.core import settings, create_access_token, get_password_hash, encrypt_secret
from app.core.exceptions import EmailDeliveryError
from app.database import Base, engine, AsyncSessionLocal
from app.models import (
    User, UserRole, Client, Boleto, PaymentConfirmation, EmailConfig
)


class RecordingMailer:
    """EmailService falso: guarda as chamadas em vez de falar SMTP"""

    def __init__(self, smtp=None):
        self.smtp = smtp
        self.sent = []

    def send_boleto(self, to_email, boleto_url, amount, due_date):
        self.sent.append(("boleto", to_email, boleto_url))
        return True

    def send_invoice(self, to_email, invoice_url, invoice_number):
        self.sent.append(("invoice", to_email, invoice_url))
        return True

    def send_receipt(self, to_email, receipt_url, receipt_number, attachment=None):
        self.sent.append(("receipt", to_email, receipt_url))
        return True


class FailingMailer(RecordingMailer):
    def send_invoice(self, to_email, invoice_url, invoice_number):
        raise EmailDeliveryError("SMTP fora do ar")

    def send_receipt(self, to_email, receipt_url, receipt_number, attachment=None):
        raise EmailDeliveryError("SMTP fora do ar")


@pytest.fixture(autouse=True)
def uploads_dir(tmp_path, monkeypatch):
    """Cada teste grava PDFs no próprio diretório"""
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOADS_DIR", str(path))
    monkeypatch.setattr(settings, "CERTIFICATES_DIR", str(tmp_path / "certificates"))
    return path


@pytest.fixture
async def database():
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db(database):
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def admin_user(db):
    user = User(
        email="admin@portal.com",
        hashed_password=get_password_hash("admin123"),
        name="Administrador",
        role=UserRole.ADMIN.value
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def client_record(db):
    user = User(
        email="financeiro@empresa.com.br",
        hashed_password=get_password_hash("cliente123"),
        name="Maria Souza",
        role=UserRole.CLIENT.value
    )
    client = Client(
        user=user,
        company_name="Empresa Teste LTDA",
        cnpj="12.345.678/0001-90",
        address="Rua das Flores, 100",
        city="Manaus",
        state="AM",
        zip_code="69000-000",
    )
    db.add(user)
    db.add(client)
    await db.commit()
    return client


@pytest.fixture
async def other_client(db):
    user = User(
        email="outro@cliente.com",
        hashed_password=get_password_hash("outro123"),
        name="João Lima",
        role=UserRole.CLIENT.value
    )
    client = Client(user=user, cpf="123.456.789-09")
    db.add(user)
    db.add(client)
    await db.commit()
    return client


def _auth(user: User) -> dict:
    token = create_access_token({"sub": user.id, "email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    return _auth(admin_user)


@pytest.fixture
def client_headers(client_record):
    return _auth(client_record.user)


@pytest.fixture
async def boleto(db, client_record):
    boleto = Boleto(
        number="BOL-0001",
        client=client_record,
        amount=150.50,
        due_date=datetime(2024, 5, 10),
        description="Manutenção mensal",
        external_id="BOL1714590000000",
    )
    db.add(boleto)
    await db.commit()
    return boleto


@pytest.fixture
async def confirmation(db, boleto):
    payment_date = datetime(2024, 5, 2, 10, 30)
    confirmation = PaymentConfirmation(
        boleto_id=boleto.id,
        amount=boleto.amount,
        payment_date=payment_date,
    )
    await db.execute(Boleto.mark_paid(boleto.id, payment_date, boleto.amount))
    db.add(confirmation)
    await db.commit()
    await db.refresh(boleto)
    return confirmation


@pytest.fixture
async def email_config(db):
    config = EmailConfig(
        host="smtp.portal.test",
        port=587,
        user="portal",
        password=encrypt_secret("smtp-secret"),
        from_address="noreply@portal.test",
        secure=False,
        active=True,
    )
    db.add(config)
    await db.commit()
    return config


@pytest.fixture
async def http(database):
    from app.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

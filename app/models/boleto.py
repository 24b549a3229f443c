"""
Portal do Cliente - Boleto Model
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, DateTime, Text, Float, ForeignKey, update
from sqlalchemy.orm import relationship

from app.database import Base


class BoletoStatus(str, Enum):
    """Status do boleto"""
    PENDING = "PENDING"       # Aguardando pagamento
    PAID = "PAID"             # Pago (transição única)
    CANCELLED = "CANCELLED"   # Cancelado
    EXPIRED = "EXPIRED"       # Vencido


class Boleto(Base):
    """Modelo de Boleto bancário emitido para um cliente"""
    __tablename__ = "boletos"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Número do boleto: chave usada pelo webhook de pagamento
    number = Column(String(50), unique=True, nullable=False, index=True)

    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    client = relationship("Client", lazy="selectin")

    amount = Column(Float, nullable=False)
    due_date = Column(DateTime, nullable=False)
    description = Column(Text)

    status = Column(String(20), default=BoletoStatus.PENDING.value, nullable=False, index=True)
    payment_date = Column(DateTime)
    paid_amount = Column(Float)

    # Dados gerados pelo emissor
    external_id = Column(String(50), index=True)
    barcode = Column(String(60))
    digitable_line = Column(String(60))
    pdf_url = Column(String(500))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def mark_paid(cls, boleto_id: str, payment_date: datetime, amount: float):
        """
        UPDATE condicional para PAID. Só afeta boleto ainda não pago, então
        rowcount == 0 indica que outro pagamento chegou antes.
        """
        return (
            update(cls)
            .where(cls.id == boleto_id, cls.status != BoletoStatus.PAID.value)
            .values(
                status=BoletoStatus.PAID.value,
                payment_date=payment_date,
                paid_amount=amount,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

    def to_dict(self):
        return {
            "id": self.id,
            "number": self.number,
            "client_id": self.client_id,
            "client_name": self.client.display_name if self.client else None,
            "amount": self.amount,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "description": self.description,
            "status": self.status,
            "payment_date": self.payment_date.isoformat() if self.payment_date else None,
            "paid_amount": self.paid_amount,
            "external_id": self.external_id,
            "barcode": self.barcode,
            "digitable_line": self.digitable_line,
            "pdf_url": self.pdf_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

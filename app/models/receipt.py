"""
Portal do Cliente - Receipt Model
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, Float, ForeignKey
from sqlalchemy.orm import relationship

from app.database import Base


class Receipt(Base):
    """Recibo de pagamento"""
    __tablename__ = "receipts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    client = relationship("Client", lazy="selectin")

    boleto_id = Column(String(36), ForeignKey("boletos.id", ondelete="SET NULL"), index=True)
    boleto = relationship("Boleto", lazy="selectin")

    number = Column(String(20), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    description = Column(Text)
    issue_date = Column(DateTime, default=datetime.utcnow)
    pdf_path = Column(String(500))

    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "client_name": self.client.display_name if self.client else None,
            "boleto_id": self.boleto_id,
            "number": self.number,
            "amount": self.amount,
            "description": self.description,
            "issue_date": self.issue_date.isoformat() if self.issue_date else None,
            "pdf_path": self.pdf_path,
        }

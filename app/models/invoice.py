"""
Portal do Cliente - Invoice Model
Nota Fiscal Eletrônica (NF-e) emitida para um cliente
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, Float, ForeignKey
from sqlalchemy.orm import relationship

from app.database import Base


class Invoice(Base):
    """Modelo de Nota Fiscal"""
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    client = relationship("Client", lazy="selectin")

    number = Column(String(20), nullable=False)
    series = Column(String(5), nullable=False, default="1")
    amount = Column(Float, nullable=False)
    description = Column(Text)

    # Dados da NF-e
    nfe_key = Column(String(44), index=True)
    nfe_xml = Column(Text)
    nfe_pdf = Column(String(500))

    issue_date = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "client_name": self.client.display_name if self.client else None,
            "number": self.number,
            "series": self.series,
            "amount": self.amount,
            "description": self.description,
            "nfe_key": self.nfe_key,
            "nfe_xml": self.nfe_xml,
            "nfe_pdf": self.nfe_pdf,
            "issue_date": self.issue_date.isoformat() if self.issue_date else None,
        }

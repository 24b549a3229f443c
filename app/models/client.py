"""
Portal do Cliente - Client Model
Dados cadastrais da empresa/pessoa atendida; pertence a exatamente um User
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from app.database import Base


class Client(Base):
    """Modelo de Cliente"""
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True
    )
    user = relationship("User", back_populates="client", lazy="selectin")

    # Dados da empresa
    company_name = Column(String(255))
    cnpj = Column(String(20), index=True)
    cpf = Column(String(14), index=True)
    phone = Column(String(20))

    # Endereço
    address = Column(Text)
    city = Column(String(100))
    state = Column(String(2))
    zip_code = Column(String(10))

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def display_name(self) -> str:
        if self.company_name:
            return self.company_name
        if self.user:
            return self.user.name
        return "Cliente Consumidor"

    @property
    def document(self) -> str:
        return self.cnpj or self.cpf or ""

    @property
    def email(self):
        return self.user.email if self.user else None

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.user.name if self.user else None,
            "email": self.email,
            "company_name": self.company_name,
            "cnpj": self.cnpj,
            "cpf": self.cpf,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

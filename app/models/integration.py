"""
Portal do Cliente - Integration Config Models
Configurações administráveis de NF-e e SMTP
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Boolean, DateTime, Integer

from app.database import Base


class NfeEnvironment(str, Enum):
    """Ambiente SEFAZ"""
    HOMOLOGATION = "HOMOLOGATION"
    PRODUCTION = "PRODUCTION"


class NfeConfig(Base):
    """Configuração de emissão de NF-e (uma linha por instalação)"""
    __tablename__ = "nfe_configs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    environment = Column(String(20), nullable=False, default=NfeEnvironment.HOMOLOGATION.value)
    certificate_path = Column(String(500))
    certificate_pass = Column(String(500))  # Criptografada (Fernet)

    # Versão para detectar atualizações concorrentes
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    def to_dict(self):
        return {
            "id": self.id,
            "environment": self.environment,
            "certificate_path": self.certificate_path,
            "has_certificate_pass": bool(self.certificate_pass),
            "version": self.version,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class EmailConfig(Base):
    """Configuração SMTP; somente uma fica ativa"""
    __tablename__ = "email_configs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    host = Column(String(255), nullable=False)
    port = Column(Integer, nullable=False, default=587)
    user = Column(String(255))
    password = Column(String(500))  # Criptografada (Fernet)
    from_address = Column(String(255), nullable=False)
    secure = Column(Boolean, default=False)  # SSL direto (porta 465)
    active = Column(Boolean, default=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        # Nunca expõe a senha
        return {
            "id": self.id,
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "from_address": self.from_address,
            "secure": self.secure,
            "active": self.active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

"""
Portal do Cliente - Payment Confirmation Model
Evento de pagamento confirmado e o estado da automação pós-pagamento
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, DateTime, Text, Float, ForeignKey

from app.database import Base


class PipelineState(str, Enum):
    """
    Estado da automação de uma confirmação.
    PENDING -> RECEIPT_DONE -> INVOICE_DONE -> COMPLETE; FAILED é terminal
    até um retry explícito, que retoma em resume_state.
    """
    PENDING = "PENDING"
    RECEIPT_DONE = "RECEIPT_DONE"
    INVOICE_DONE = "INVOICE_DONE"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


_RECEIPT_GENERATED = {
    PipelineState.RECEIPT_DONE.value,
    PipelineState.INVOICE_DONE.value,
    PipelineState.COMPLETE.value,
}
_INVOICE_GENERATED = {
    PipelineState.INVOICE_DONE.value,
    PipelineState.COMPLETE.value,
}


class PaymentConfirmation(Base):
    """Confirmação de pagamento de um boleto"""
    __tablename__ = "payment_confirmations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    boleto_id = Column(String(36), ForeignKey("boletos.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    payment_date = Column(DateTime, nullable=False)

    # Automação
    state = Column(String(20), default=PipelineState.PENDING.value, nullable=False, index=True)
    resume_state = Column(String(20))  # Estado a retomar após FAILED
    failure_cause = Column(Text)
    failed_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def effective_state(self) -> str:
        """Estado considerado para os flags (FAILED conta o que já foi concluído)"""
        if self.state == PipelineState.FAILED.value:
            return self.resume_state or PipelineState.PENDING.value
        return self.state

    @property
    def receipt_generated(self) -> bool:
        return self.effective_state in _RECEIPT_GENERATED

    @property
    def invoice_generated(self) -> bool:
        return self.effective_state in _INVOICE_GENERATED

    def to_dict(self):
        return {
            "id": self.id,
            "boleto_id": self.boleto_id,
            "amount": self.amount,
            "payment_date": self.payment_date.isoformat() if self.payment_date else None,
            "state": self.state,
            "receipt_generated": self.receipt_generated,
            "invoice_generated": self.invoice_generated,
            "failure_cause": self.failure_cause,
            "failed_at": self.failed_at.isoformat() if self.failed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

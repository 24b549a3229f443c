"""
Automação pós-pagamento

Após a confirmação de um pagamento gera o recibo e a NF-e do cliente e
envia ambos por email. Cada etapa avança o estado da confirmação com um
UPDATE condicional (compare-and-set), gravado na mesma transação do
documento gerado: duas execuções concorrentes para a mesma confirmação
produzem no máximo um recibo e uma nota.

    PENDING -> RECEIPT_DONE -> INVOICE_DONE -> COMPLETE
    (qualquer etapa) -> FAILED, retomável via retry
"""
import asyncio
import logging
import traceback
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.email import EmailService
from app.core.error_notifier import send_error_notification
from app.core.exceptions import (
    NotFoundError, PipelineFailedError, EmailNotConfiguredError
)
from app.core.runtime_config import (
    NfeSettings, SmtpSettings, load_nfe_settings, load_smtp_settings
)
from app.core.storage import remove_file
from app.database import AsyncSessionLocal
from app.models import Boleto, Invoice, PaymentConfirmation, PipelineState, Receipt
from .common import ClientInfo, LineItem
from .nfe_service import InvoiceData, NFeService, nfe_service
from .receipt_service import ReceiptData, ReceiptService, receipt_service, generate_receipt_number

logger = logging.getLogger(__name__)

ACTIVE_STATES = (
    PipelineState.PENDING.value,
    PipelineState.RECEIPT_DONE.value,
    PipelineState.INVOICE_DONE.value,
)


@dataclass
class PaymentContext:
    """Dados do boleto/cliente lidos uma vez por execução"""
    confirmation_id: str
    boleto_id: str
    client_id: str
    client: ClientInfo
    description: Optional[str]
    amount: float
    payment_date: datetime
    nfe: NfeSettings
    mailer: Optional[EmailService]


class AutomationService:
    """Orquestra recibo, NF-e e notificações de uma confirmação de pagamento"""

    def __init__(
        self,
        receipts: Optional[ReceiptService] = None,
        invoices: Optional[NFeService] = None,
        mailer_factory: Callable[[SmtpSettings], EmailService] = EmailService,
        session_factory=None
    ):
        self.receipts = receipts or receipt_service
        self.invoices = invoices or nfe_service
        self.mailer_factory = mailer_factory
        self.session_factory = session_factory or AsyncSessionLocal

    # ------------------------------------------
    # Entrada principal
    # ------------------------------------------

    async def process_payment(
        self,
        db: AsyncSession,
        confirmation_id: str,
        retry: bool = False
    ) -> PaymentConfirmation:
        """
        Executa as etapas pendentes da confirmação.

        Raises:
            NotFoundError: confirmação ou boleto inexistente
            PipelineFailedError: confirmação em FAILED sem retry
            ConfigurationError / DocumentRenderError: etapa falhou (estado FAILED gravado)
        """
        confirmation = await db.get(PaymentConfirmation, confirmation_id)
        if not confirmation:
            raise NotFoundError("Confirmação de pagamento não encontrada")

        if confirmation.state == PipelineState.COMPLETE.value:
            logger.info(f"Automação já concluída para confirmação {confirmation_id}")
            return confirmation

        if confirmation.state == PipelineState.FAILED.value:
            if not retry:
                raise PipelineFailedError(
                    f"Automação falhou anteriormente: {confirmation.failure_cause}"
                )
            await self._resume(db, confirmation)

        context = await self._load_context(db, confirmation)
        logger.info(f"Iniciando automação da confirmação {confirmation_id} ({confirmation.state})")

        try:
            while True:
                state = confirmation.state
                if state == PipelineState.PENDING.value:
                    await self._generate_receipt(db, confirmation, context)
                elif state == PipelineState.RECEIPT_DONE.value:
                    await self._generate_invoice(db, confirmation, context)
                elif state == PipelineState.INVOICE_DONE.value:
                    await self._complete(db, confirmation, context)
                elif state == PipelineState.FAILED.value:
                    raise PipelineFailedError(
                        f"Automação falhou em execução concorrente: {confirmation.failure_cause}"
                    )
                else:
                    break
        except PipelineFailedError:
            raise
        except Exception as e:
            logger.error(f"Erro na automação da confirmação {confirmation_id}: {e}")
            await db.rollback()
            await self._record_failure(db, confirmation_id, e)
            raise

        logger.info(f"Automação concluída para confirmação {confirmation_id}")
        return confirmation

    async def run_detached(self, confirmation_id: str) -> bool:
        """
        Execução em background (webhook). Abre a própria sessão, registra o
        resultado no log e avisa a operação em caso de falha. Nunca levanta.
        """
        async with self.session_factory() as db:
            try:
                await self.process_payment(db, confirmation_id)
            except Exception as e:
                logger.error(
                    f"Automação em background falhou para confirmação {confirmation_id}: {e}",
                    exc_info=True
                )
                await asyncio.to_thread(
                    send_error_notification,
                    error_type="PIPELINE_ERROR",
                    error_message=str(e),
                    error_details=traceback.format_exc(),
                    confirmation_id=confirmation_id,
                    endpoint="/api/payments/webhook",
                )
                return False

        logger.info(f"Automação em background concluída para confirmação {confirmation_id}")
        return True

    # ------------------------------------------
    # Estado
    # ------------------------------------------

    async def _advance_state(
        self,
        db: AsyncSession,
        confirmation_id: str,
        expected: PipelineState,
        new: PipelineState,
        **values
    ) -> bool:
        """UPDATE ... WHERE state = expected; False quando outra execução avançou antes"""
        result = await db.execute(
            update(PaymentConfirmation)
            .where(
                PaymentConfirmation.id == confirmation_id,
                PaymentConfirmation.state == expected.value
            )
            .values(state=new.value, updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _resume(self, db: AsyncSession, confirmation: PaymentConfirmation):
        resume = PipelineState(confirmation.resume_state or PipelineState.PENDING.value)
        await self._advance_state(
            db, confirmation.id, PipelineState.FAILED, resume,
            resume_state=None, failure_cause=None, failed_at=None
        )
        await db.commit()
        await db.refresh(confirmation)
        logger.info(f"Retomando confirmação {confirmation.id} em {confirmation.state}")

    async def _record_failure(self, db: AsyncSession, confirmation_id: str, error: Exception):
        """Marca FAILED guardando o estado atingido em resume_state"""
        cause = f"{type(error).__name__}: {error}"
        try:
            await db.execute(
                update(PaymentConfirmation)
                .where(
                    PaymentConfirmation.id == confirmation_id,
                    PaymentConfirmation.state.in_(ACTIVE_STATES)
                )
                .values(
                    resume_state=PaymentConfirmation.state,
                    state=PipelineState.FAILED.value,
                    failure_cause=cause[:2000],
                    failed_at=datetime.utcnow(),
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except SQLAlchemyError as db_error:
            await db.rollback()
            logger.error(f"Não foi possível registrar falha da confirmação {confirmation_id}: {db_error}")

    # ------------------------------------------
    # Contexto
    # ------------------------------------------

    async def _load_mailer(self, db: AsyncSession) -> Optional[EmailService]:
        try:
            smtp = await load_smtp_settings(db)
        except EmailNotConfiguredError as e:
            logger.warning(f"Emails da automação desativados: {e.message}")
            return None
        return self.mailer_factory(smtp)

    async def _load_context(self, db: AsyncSession, confirmation: PaymentConfirmation) -> PaymentContext:
        result = await db.execute(select(Boleto).where(Boleto.id == confirmation.boleto_id))
        boleto = result.scalar_one_or_none()
        if not boleto or not boleto.client:
            raise NotFoundError("Boleto não encontrado")

        return PaymentContext(
            confirmation_id=confirmation.id,
            boleto_id=boleto.id,
            client_id=boleto.client_id,
            client=ClientInfo.from_client(boleto.client),
            description=boleto.description,
            amount=confirmation.amount,
            payment_date=confirmation.payment_date,
            nfe=await load_nfe_settings(db),
            mailer=await self._load_mailer(db),
        )

    async def _notify(self, context: PaymentContext, label: str, send_name: str, *args):
        """Envio de email best-effort: falhas são logadas e não interrompem a automação"""
        if context.mailer is None or not context.client.email:
            logger.info(f"Email de {label} não enviado: sem SMTP ou sem destinatário")
            return
        try:
            await asyncio.to_thread(getattr(context.mailer, send_name), context.client.email, *args)
        except Exception as e:
            logger.error(f"Falha ao enviar email de {label} para {context.client.email}: {e}")

    # ------------------------------------------
    # Etapas
    # ------------------------------------------

    async def _generate_receipt(self, db: AsyncSession, confirmation: PaymentConfirmation,
                                context: PaymentContext):
        items = []
        if context.description:
            items.append(LineItem(
                name=context.description,
                quantity=1,
                unit="un",
                unit_price=context.amount,
            ))

        number = generate_receipt_number()
        description = context.description or "Pagamento recebido"
        data = ReceiptData(
            client=context.client,
            amount=context.amount,
            description=description,
            number=number,
            items=items,
            payment_date=context.payment_date,
        )
        path, url = await self.receipts.render(data)

        try:
            db.add(Receipt(
                client_id=context.client_id,
                boleto_id=context.boleto_id,
                number=number,
                amount=context.amount,
                description=description,
                issue_date=context.payment_date,
                pdf_path=url,
            ))
            won = await self._advance_state(
                db, context.confirmation_id, PipelineState.PENDING, PipelineState.RECEIPT_DONE
            )
            if not won:
                await db.rollback()
                remove_file(path)
                logger.warning(f"Recibo da confirmação {context.confirmation_id} já gerado por outra execução")
                await db.refresh(confirmation)
                return
            await db.commit()
        except Exception:
            remove_file(path)
            raise

        await db.refresh(confirmation)
        logger.info(f"Recibo {number} gerado para confirmação {context.confirmation_id}")
        await self._notify(context, "recibo", "send_receipt", url, number, path)

    async def _generate_invoice(self, db: AsyncSession, confirmation: PaymentConfirmation,
                                context: PaymentContext):
        data = InvoiceData(
            client_id=context.client_id,
            client=context.client,
            amount=context.amount,
            description=context.description or "Serviços prestados",
            issue_date=context.payment_date,
        )
        result = await self.invoices.generate(data, context.nfe)

        try:
            db.add(Invoice(
                client_id=context.client_id,
                number=result.number,
                series=result.series,
                amount=context.amount,
                description=context.description,
                nfe_key=result.key,
                nfe_xml=result.xml,
                nfe_pdf=result.pdf_url,
                issue_date=context.payment_date,
            ))
            won = await self._advance_state(
                db, context.confirmation_id, PipelineState.RECEIPT_DONE, PipelineState.INVOICE_DONE
            )
            if not won:
                await db.rollback()
                remove_file(result.pdf_path)
                logger.warning(f"NF-e da confirmação {context.confirmation_id} já gerada por outra execução")
                await db.refresh(confirmation)
                return
            await db.commit()
        except Exception:
            remove_file(result.pdf_path)
            raise

        await db.refresh(confirmation)
        logger.info(f"NF-e {result.number} gerada para confirmação {context.confirmation_id}")
        await self._notify(context, "nota fiscal", "send_invoice", result.pdf_url, result.number)

    async def _complete(self, db: AsyncSession, confirmation: PaymentConfirmation,
                        context: PaymentContext):
        await self._advance_state(
            db, context.confirmation_id, PipelineState.INVOICE_DONE, PipelineState.COMPLETE
        )
        await db.commit()
        await db.refresh(confirmation)


# Instancia global
automation_service = AutomationService()

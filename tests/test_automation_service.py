import re
from datetime import datetime

import pytest
from sqlalchemy import delete, func, select, update

from app.core.exceptions import ConfigurationError, NotFoundError, PipelineFailedError
from app.core.storage import path_from_url
from app.models import Boleto, Invoice, NfeConfig, NfeEnvironment, PaymentConfirmation, PipelineState, Receipt
from app.services import automation_service as automation_module
from app.services.automation_service import AutomationService
from app.services.nfe_service import NFeService
from app.services.receipt_service import ReceiptService
from app.utils.pdf_renderer import PdfRenderer
from tests.conftest import FailingMailer, RecordingMailer


def _service(mailer_cls=RecordingMailer):
    mailers = []

    def factory(smtp):
        mailer = mailer_cls(smtp)
        mailers.append(mailer)
        return mailer

    service = AutomationService(
        receipts=ReceiptService(renderer=PdfRenderer(compress=False)),
        invoices=NFeService(renderer=PdfRenderer(compress=False)),
        mailer_factory=factory,
    )
    return service, mailers


async def _count(db, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


async def _production_without_certificate(db):
    db.add(NfeConfig(environment=NfeEnvironment.PRODUCTION.value))
    await db.commit()


async def test_full_run_generates_documents_and_emails(db, confirmation, email_config, client_record):
    client_email = client_record.email
    service, mailers = _service()

    result = await service.process_payment(db, confirmation.id)

    assert result.state == PipelineState.COMPLETE.value
    assert result.receipt_generated and result.invoice_generated

    receipt = (await db.execute(select(Receipt))).scalar_one()
    assert receipt.boleto_id == confirmation.boleto_id
    assert receipt.amount == 150.50
    assert re.fullmatch(r"\d{4}-\d{2}", receipt.number)
    receipt_pdf = path_from_url(receipt.pdf_path).read_bytes()
    assert b"R$ 150.50" in receipt_pdf
    assert receipt.number.encode() in receipt_pdf

    invoice = (await db.execute(select(Invoice))).scalar_one()
    assert len(invoice.nfe_key) == 44
    assert "<tpAmb>2</tpAmb>" in invoice.nfe_xml
    assert path_from_url(invoice.nfe_pdf).exists()

    sent = mailers[0].sent
    assert [kind for kind, _, _ in sent] == ["receipt", "invoice"]
    assert all(to == client_email for _, to, _ in sent)


async def test_second_run_is_noop(db, confirmation, email_config):
    service, mailers = _service()

    await service.process_payment(db, confirmation.id)
    again = await service.process_payment(db, confirmation.id)

    assert again.state == PipelineState.COMPLETE.value
    assert await _count(db, Receipt) == 1
    assert await _count(db, Invoice) == 1
    assert len(mailers) == 1


async def test_homologation_scenario(db, client_record):
    client_id = client_record.id
    payment_date = datetime(2024, 6, 3, 9, 0)
    boleto = Boleto(
        number="BOL-0199",
        client=client_record,
        amount=199.90,
        due_date=datetime(2024, 6, 5),
        description="Teste Homologação NFe",
        status="PAID",
        payment_date=payment_date,
        paid_amount=199.90,
    )
    db.add(boleto)
    await db.commit()
    confirmation = PaymentConfirmation(boleto_id=boleto.id, amount=199.90, payment_date=payment_date)
    db.add(confirmation)
    await db.commit()
    service, _ = _service()

    result = await service.process_payment(db, confirmation.id)

    assert result.state == PipelineState.COMPLETE.value

    receipt = (await db.execute(select(Receipt))).scalar_one()
    assert receipt.client_id == client_id
    assert receipt.amount == 199.90
    assert b"R$ 199.90" in path_from_url(receipt.pdf_path).read_bytes()

    invoice = (await db.execute(select(Invoice))).scalar_one()
    assert invoice.client_id == client_id
    assert invoice.description == "Teste Homologação NFe"
    assert "<tpAmb>2</tpAmb>" in invoice.nfe_xml
    assert b"SEM VALOR FISCAL" in path_from_url(invoice.nfe_pdf).read_bytes()


async def test_missing_confirmation_raises_not_found(db, database):
    service, _ = _service()

    with pytest.raises(NotFoundError):
        await service.process_payment(db, "nao-existe")


async def test_missing_boleto_raises_not_found(db, confirmation, email_config):
    confirmation_id = confirmation.id
    await db.execute(delete(Boleto).where(Boleto.id == confirmation.boleto_id))
    await db.commit()
    service, mailers = _service()

    with pytest.raises(NotFoundError):
        await service.process_payment(db, confirmation_id)

    assert await _count(db, Receipt) == 0
    assert await _count(db, Invoice) == 0
    assert mailers == []


async def test_production_without_certificate_fails_after_receipt(db, confirmation, uploads_dir):
    confirmation_id = confirmation.id
    await _production_without_certificate(db)
    service, _ = _service()

    with pytest.raises(ConfigurationError):
        await service.process_payment(db, confirmation_id)

    failed = await db.get(PaymentConfirmation, confirmation_id, populate_existing=True)
    assert failed.state == PipelineState.FAILED.value
    assert failed.resume_state == PipelineState.RECEIPT_DONE.value
    assert "ConfigurationError" in failed.failure_cause
    assert failed.failed_at is not None
    assert failed.receipt_generated
    assert not failed.invoice_generated

    assert await _count(db, Receipt) == 1
    assert await _count(db, Invoice) == 0
    assert not (uploads_dir / "nfe").exists()


async def test_failed_requires_explicit_retry(db, confirmation):
    confirmation_id = confirmation.id
    await _production_without_certificate(db)
    service, _ = _service()

    with pytest.raises(ConfigurationError):
        await service.process_payment(db, confirmation_id)

    with pytest.raises(PipelineFailedError):
        await service.process_payment(db, confirmation_id)

    # Certificado instalado: retry retoma na NF-e sem duplicar o recibo
    config = (await db.execute(select(NfeConfig))).scalar_one()
    config.certificate_path = "/certs/a1.pfx"
    await db.commit()

    result = await service.process_payment(db, confirmation_id, retry=True)

    assert result.state == PipelineState.COMPLETE.value
    assert result.failure_cause is None
    assert await _count(db, Receipt) == 1
    assert await _count(db, Invoice) == 1


async def test_email_failure_does_not_stop_pipeline(db, confirmation, email_config):
    service, _ = _service(FailingMailer)

    result = await service.process_payment(db, confirmation.id)

    assert result.state == PipelineState.COMPLETE.value
    assert await _count(db, Receipt) == 1
    assert await _count(db, Invoice) == 1


async def test_runs_without_smtp_config(db, confirmation):
    service, mailers = _service()

    result = await service.process_payment(db, confirmation.id)

    assert result.state == PipelineState.COMPLETE.value
    assert mailers == []


async def test_receipt_step_skipped_when_already_done(db, confirmation):
    confirmation.state = PipelineState.RECEIPT_DONE.value
    await db.commit()
    service, _ = _service()

    result = await service.process_payment(db, confirmation.id)

    assert result.state == PipelineState.COMPLETE.value
    assert await _count(db, Receipt) == 0
    assert await _count(db, Invoice) == 1


async def test_lost_receipt_race_discards_duplicate(db, confirmation, uploads_dir):
    confirmation_id = confirmation.id
    # Outra execução avançou o estado depois desta sessão ter lido PENDING
    await db.execute(
        update(PaymentConfirmation)
        .where(PaymentConfirmation.id == confirmation_id)
        .values(state=PipelineState.RECEIPT_DONE.value)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    assert confirmation.state == PipelineState.PENDING.value
    service, _ = _service()

    result = await service.process_payment(db, confirmation_id)

    assert result.state == PipelineState.COMPLETE.value
    assert await _count(db, Receipt) == 0
    assert await _count(db, Invoice) == 1
    assert list((uploads_dir / "receipts").glob("*.pdf")) == []


async def test_run_detached_success(db, confirmation):
    confirmation_id = confirmation.id
    service, _ = _service()

    assert await service.run_detached(confirmation_id) is True

    done = await db.get(PaymentConfirmation, confirmation_id, populate_existing=True)
    assert done.state == PipelineState.COMPLETE.value


async def test_run_detached_failure_notifies_and_never_raises(db, confirmation, monkeypatch):
    confirmation_id = confirmation.id
    await _production_without_certificate(db)
    notifications = []
    monkeypatch.setattr(
        automation_module, "send_error_notification",
        lambda **kwargs: notifications.append(kwargs) or True
    )
    service, _ = _service()

    assert await service.run_detached(confirmation_id) is False

    failed = await db.get(PaymentConfirmation, confirmation_id, populate_existing=True)
    assert failed.state == PipelineState.FAILED.value
    assert notifications[0]["confirmation_id"] == confirmation_id
    assert notifications[0]["error_type"] == "PIPELINE_ERROR"

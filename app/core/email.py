"""
Portal do Cliente - Email Service
Envio de boletos, notas fiscais e recibos aos clientes
"""
import smtplib
import ssl
from email.mime.application import MIMEApplication
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union
import logging

from .config import settings
from .exceptions import EmailDeliveryError
from .runtime_config import SmtpSettings
from app.utils.formatting import format_currency, format_date

logger = logging.getLogger(__name__)

AttachmentPath = Union[str, Path]


def absolute_url(url: str) -> str:
    """/uploads/x.pdf -> http://host/uploads/x.pdf"""
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return f"{settings.APP_URL.rstrip('/')}/{url.lstrip('/')}"


class EmailService:
    """Serviço de envio de emails via SMTP"""

    def __init__(self, smtp: SmtpSettings):
        self.host = smtp.host
        self.port = smtp.port
        self.user = smtp.user
        self.password = smtp.password
        self.from_email = smtp.from_address
        self.from_name = smtp.from_name
        self.use_tls = smtp.use_tls
        self.use_ssl = smtp.secure

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            context = ssl.create_default_context()
            return smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=settings.SMTP_TIMEOUT)
        server = smtplib.SMTP(self.host, self.port, timeout=settings.SMTP_TIMEOUT)
        if self.use_tls:
            try:
                server.starttls()
            except (smtplib.SMTPException, OSError):
                server.close()
                raise
        return server

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        attachments: Optional[List[AttachmentPath]] = None,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Envia um email

        Args:
            to_email: Email do destinatário
            subject: Assunto do email
            html_content: Conteúdo HTML do email
            attachments: Caminhos de PDFs a anexar
            text_content: Conteúdo texto puro (opcional)

        Returns:
            True se enviado

        Raises:
            EmailDeliveryError: falha de conexão, autenticação ou envio
        """
        message = MIMEMultipart("mixed")
        message["Subject"] = subject
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email

        body = MIMEMultipart("alternative")
        if text_content:
            body.attach(MIMEText(text_content, "plain", "utf-8"))
        body.attach(MIMEText(html_content, "html", "utf-8"))
        message.attach(body)

        try:
            for attachment in attachments or []:
                path = Path(attachment)
                part = MIMEApplication(path.read_bytes(), _subtype="pdf")
                part.add_header("Content-Disposition", "attachment", filename=path.name)
                message.attach(part)

            with self._connect() as server:
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.sendmail(self.from_email, to_email, message.as_string())

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {str(e)}")
            raise EmailDeliveryError(f"Erro ao enviar email para {to_email}") from e

        logger.info(f"Email sent successfully to {to_email}")
        return True

    def send_boleto(
        self,
        to_email: str,
        boleto_url: str,
        amount: float,
        due_date: datetime
    ) -> bool:
        """Aviso de novo boleto com link para o PDF"""
        link = absolute_url(boleto_url)
        html_content = f"""
<h2>Boleto Gerado</h2>
<p>Um novo boleto foi gerado para você.</p>
<p><strong>Valor:</strong> {format_currency(amount)}</p>
<p><strong>Vencimento:</strong> {format_date(due_date)}</p>
<p><a href="{link}">Clique aqui para visualizar o boleto</a></p>
"""
        return self.send_email(to_email, "Novo Boleto Gerado", html_content)

    def send_invoice(self, to_email: str, invoice_url: str, invoice_number: str) -> bool:
        link = absolute_url(invoice_url)
        html_content = f"""
<h2>Nota Fiscal Emitida</h2>
<p>Sua nota fiscal foi emitida com sucesso.</p>
<p><strong>Número:</strong> {invoice_number}</p>
<p><a href="{link}">Clique aqui para visualizar a nota fiscal</a></p>
"""
        return self.send_email(to_email, f"Nota Fiscal {invoice_number}", html_content)

    def send_receipt(
        self,
        to_email: str,
        receipt_url: str,
        receipt_number: str,
        attachment: Optional[AttachmentPath] = None
    ) -> bool:
        link = absolute_url(receipt_url)
        html_content = f"""
<h2>Recibo de Pagamento</h2>
<p>Seu pagamento foi confirmado.</p>
<p><strong>Recibo:</strong> {receipt_number}</p>
<p><a href="{link}">Clique aqui para visualizar o recibo</a></p>
"""
        attachments = [attachment] if attachment else None
        return self.send_email(to_email, f"Recibo {receipt_number}", html_content, attachments)

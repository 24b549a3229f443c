"""
Portal do Cliente - Error Notification System
Envia emails à equipe de operação quando a automação de pagamentos falha
"""
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)

# Cache para evitar spam de emails (mesmo erro em sequencia)
_error_cache = {}
_CACHE_TTL_SECONDS = 300  # 5 minutos entre emails do mesmo erro


def _get_error_key(error_type: str, error_msg: str) -> str:
    """Gera chave unica para o erro"""
    return f"{error_type}:{error_msg[:100]}"


def _should_send_notification(error_key: str) -> bool:
    """Verifica se deve enviar notificacao (evita spam)"""
    now = datetime.utcnow()

    if error_key in _error_cache:
        last_sent = _error_cache[error_key]
        if (now - last_sent).total_seconds() < _CACHE_TTL_SECONDS:
            return False

    _error_cache[error_key] = now
    return True


def _field(label: str, value: str, css: str = "") -> str:
    return f"""
                    <div class="field">
                        <div class="field-label">{label}</div>
                        <div class="field-value {css}">{value}</div>
                    </div>
    """


def send_error_notification(
    error_type: str,
    error_message: str,
    error_details: Optional[str] = None,
    confirmation_id: Optional[str] = None,
    endpoint: Optional[str] = None
) -> bool:
    """
    Envia email de notificacao de erro para ERROR_NOTIFICATION_EMAIL.

    Args:
        error_type: Tipo do erro (ex: "PIPELINE_ERROR", "WEBHOOK_ERROR")
        error_message: Mensagem resumida do erro
        error_details: Stack trace ou detalhes tecnicos
        confirmation_id: Confirmação de pagamento afetada
        endpoint: Rota ou tarefa que gerou o erro

    Returns:
        True se o email foi enviado. Falhas de envio só são logadas.
    """
    if not settings.ERROR_NOTIFICATION_ENABLED:
        return False

    if not settings.SMTP_USER or not settings.SMTP_PASSWORD:
        logger.warning("SMTP nao configurado - notificacao de erro nao enviada")
        return False

    # Verifica cache para evitar spam
    error_key = _get_error_key(error_type, error_message)
    if not _should_send_notification(error_key):
        logger.debug(f"Notificacao de erro suprimida (spam protection): {error_key}")
        return False

    msg = MIMEMultipart('alternative')
    msg['Subject'] = f"[PORTAL ERRO] {error_type}: {error_message[:50]}"
    msg['From'] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
    msg['To'] = settings.ERROR_NOTIFICATION_EMAIL

    timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S UTC")

    html_body = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: Arial, sans-serif; background: #f5f5f5; padding: 20px; }}
                .container {{ max-width: 600px; margin: 0 auto; background: white; border-radius: 8px; }}
                .header {{ background: #dc2626; color: white; padding: 20px; }}
                .header h1 {{ margin: 0; font-size: 20px; }}
                .content {{ padding: 20px; }}
                .field {{ margin-bottom: 15px; }}
                .field-label {{ font-weight: bold; color: #374151; font-size: 12px; text-transform: uppercase; }}
                .field-value {{ background: #f9fafb; padding: 10px; border: 1px solid #e5e7eb; font-family: monospace; font-size: 13px; }}
                .error-details {{ background: #fef2f2; border: 1px solid #fecaca; color: #991b1b; }}
                .footer {{ background: #f9fafb; padding: 15px 20px; font-size: 11px; color: #6b7280; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header">
                    <h1>&#9888; Erro no {settings.APP_NAME}</h1>
                </div>
                <div class="content">
    """
    html_body += _field("Tipo do Erro", error_type)
    html_body += _field("Mensagem", error_message)
    html_body += _field("Data/Hora", timestamp)

    if confirmation_id:
        html_body += _field("Confirmação", confirmation_id)
    if endpoint:
        html_body += _field("Endpoint", endpoint)
    if error_details:
        html_body += _field("Detalhes Tecnicos", f"<pre>{error_details[:2000]}</pre>", "error-details")

    html_body += """
                </div>
                <div class="footer">
                    Este email foi enviado automaticamente pelo monitoramento do portal.<br>
                    Acesse o servidor para verificar os logs completos.
                </div>
            </div>
        </body>
        </html>
    """

    msg.attach(MIMEText(html_body, 'html'))

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT) as server:
            if settings.SMTP_TLS:
                server.starttls()
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Falha ao enviar notificacao de erro: {e}")
        return False

    logger.info(f"Notificacao de erro enviada: {error_type}")
    return True

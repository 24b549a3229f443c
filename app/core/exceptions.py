"""
Portal do Cliente - Exceptions
Erros de domínio levantados pelos serviços e convertidos em JSON pela API
"""
from typing import Optional


class PortalError(Exception):
    """Erro base do portal"""
    status_code = 500
    default_message = "Erro interno"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(PortalError):
    """Registro referenciado não existe"""
    status_code = 404
    default_message = "Registro não encontrado"


class ConfigurationError(PortalError):
    """Configuração ausente ou inválida para a operação"""
    status_code = 422
    default_message = "Configuração inválida"


class EmailNotConfiguredError(ConfigurationError):
    default_message = "Configuração de email não encontrada"


class DocumentRenderError(PortalError):
    """Falha de I/O ao gravar um PDF"""
    status_code = 500
    default_message = "Erro ao gerar documento"


class EmailDeliveryError(PortalError):
    """Falha no envio SMTP"""
    status_code = 502
    default_message = "Erro ao enviar email"


class PipelineFailedError(PortalError):
    """Automação marcada como FAILED; exige retry explícito"""
    status_code = 409
    default_message = "Automação falhou anteriormente"

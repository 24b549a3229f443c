"""
Servico de Emissao de Boletos

Gera o código de barras no layout FEBRABAN (44 posições), a linha digitável
(47 dígitos) e o PDF do boleto. Não há registro em banco/gateway: o boleto
emitido serve para o fluxo interno do portal e para testes.
"""
import asyncio
import logging
import re
import time
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Union

from app.core.config import settings
from app.core.storage import upload_target
from app.utils.formatting import format_currency, format_date, to_decimal
from app.utils.pdf_renderer import (
    DocumentContent, DocumentKind, InfoBlock, TextSection, PdfRenderer, pdf_renderer
)
from .common import ClientInfo

logger = logging.getLogger(__name__)

BOLETOS_FOLDER = "boletos"

CODIGO_MOEDA = "9"          # Real
CARTEIRA = "17"
DATA_BASE_FATOR = date(1997, 10, 7)


@dataclass
class BoletoData:
    number: str
    client: ClientInfo
    amount: float
    due_date: Union[date, datetime]
    description: str = ""


@dataclass
class BoletoResult:
    external_id: str
    barcode: str
    digitable_line: str
    pdf_url: str
    pdf_path: Path


# ==========================================
# DÍGITOS VERIFICADORES
# ==========================================

def calcular_dv_mod10(campo: str) -> str:
    """DV módulo 10 dos campos da linha digitável (pesos 2,1 da direita)"""
    soma = 0
    peso = 2
    for digito in reversed(campo):
        produto = int(digito) * peso
        soma += produto // 10 + produto % 10
        peso = 1 if peso == 2 else 2
    return str((10 - soma % 10) % 10)


def calcular_dv_mod11(codigo: str) -> str:
    """DV geral do código de barras (pesos 2..9 da direita; 0, 10 e 11 viram 1)"""
    soma = 0
    peso = 2
    for digito in reversed(codigo):
        soma += int(digito) * peso
        peso = 2 if peso == 9 else peso + 1
    dv = 11 - soma % 11
    return "1" if dv in (0, 10, 11) else str(dv)


def fator_vencimento(vencimento: Union[date, datetime]) -> str:
    """
    Dias desde 07/10/1997. Ao atingir 9999 (21/02/2025) o fator reinicia
    em 1000.
    """
    if isinstance(vencimento, datetime):
        vencimento = vencimento.date()
    dias = (vencimento - DATA_BASE_FATOR).days
    if dias > 9999:
        dias = (dias - 10000) % 9000 + 1000
    return str(max(dias, 0)).zfill(4)


def campo_livre(numero: str, external_id: str) -> str:
    """25 posições: convênio zerado + nosso número (17) + carteira"""
    digitos = re.sub(r"\D", "", f"{numero}{external_id}")
    nosso_numero = digitos[-17:].zfill(17)
    return f"000000{nosso_numero}{CARTEIRA}"


def gerar_codigo_barras(banco: str, vencimento, valor: float, livre: str) -> str:
    centavos = int(to_decimal(valor) * 100)
    if centavos > 9_999_999_999:
        raise ValueError("Valor excede o limite do código de barras")

    fator = fator_vencimento(vencimento)
    sem_dv = f"{banco}{CODIGO_MOEDA}{fator}{str(centavos).zfill(10)}{livre}"
    dv = calcular_dv_mod11(sem_dv)
    return f"{sem_dv[:4]}{dv}{sem_dv[4:]}"


def gerar_linha_digitavel(codigo_barras: str) -> str:
    """Linha digitável formatada a partir do código de barras de 44 posições"""
    livre = codigo_barras[19:44]

    campo1 = f"{codigo_barras[0:4]}{livre[0:5]}"
    campo1 += calcular_dv_mod10(campo1)
    campo2 = livre[5:15]
    campo2 += calcular_dv_mod10(campo2)
    campo3 = livre[15:25]
    campo3 += calcular_dv_mod10(campo3)
    campo4 = codigo_barras[4]
    campo5 = codigo_barras[5:19]

    return (
        f"{campo1[:5]}.{campo1[5:]} "
        f"{campo2[:5]}.{campo2[5:]} "
        f"{campo3[:5]}.{campo3[5:]} "
        f"{campo4} {campo5}"
    )


# ==========================================
# DOCUMENTO
# ==========================================

def build_boleto_document(data: BoletoData, barcode: str, digitable_line: str) -> DocumentContent:
    payer = [("Nome", data.client.name)]
    if data.client.document:
        payer.append(("CPF/CNPJ", data.client.document))
    if data.client.full_address:
        payer.append(("Endereço", data.client.full_address))

    return DocumentContent(
        kind=DocumentKind.BOLETO,
        title="BOLETO BANCÁRIO",
        subtitle=f"Banco: {settings.BOLETO_BANK_CODE} - {settings.BOLETO_BANK_NAME}",
        blocks=[
            InfoBlock("Beneficiário", [
                ("Nome", settings.COMPANY_NAME),
                ("CNPJ", settings.COMPANY_DOCUMENT),
            ]),
            InfoBlock("Pagador", payer),
            InfoBlock("Vencimento", [
                ("Data de Vencimento", format_date(data.due_date)),
                ("Número do Documento", data.number),
            ]),
            InfoBlock("Valor", [
                ("Valor do Documento", format_currency(data.amount)),
            ]),
        ],
        sections=[
            TextSection("Instruções", [data.description or "Não receber após o vencimento."]),
            TextSection("Linha Digitável", [digitable_line]),
        ],
        barcode=barcode,
        barcode_caption=digitable_line,
    )


class BoletoService:
    """Emissão e cancelamento de boletos"""

    def __init__(self, renderer: Optional[PdfRenderer] = None):
        self.renderer = renderer or pdf_renderer

    async def generate(self, data: BoletoData) -> BoletoResult:
        """
        Gera código de barras, linha digitável e PDF em uploads/boletos/<external_id>.pdf.
        Falhas de renderização propagam (DocumentRenderError).
        """
        external_id = f"BOL{int(time.time() * 1000)}"
        livre = campo_livre(data.number, external_id)
        barcode = gerar_codigo_barras(settings.BOLETO_BANK_CODE, data.due_date, data.amount, livre)
        digitable_line = gerar_linha_digitavel(barcode)

        path, url = upload_target(BOLETOS_FOLDER, f"{external_id}.pdf")
        content = build_boleto_document(data, barcode, digitable_line)
        await asyncio.to_thread(self.renderer.render, content, path)

        logger.info(f"Boleto {data.number} gerado ({external_id}) para {data.client.name}")
        return BoletoResult(
            external_id=external_id,
            barcode=barcode,
            digitable_line=digitable_line,
            pdf_url=url,
            pdf_path=path,
        )

    async def cancel(self, external_id: Optional[str]) -> bool:
        """Sem gateway: cancelamento apenas registrado"""
        logger.info(f"Cancelamento de boleto solicitado: {external_id}")
        return True


boleto_service = BoletoService()

"""
Servico de Emissao de NF-e (Nota Fiscal Eletronica)

Gera a chave de acesso, um XML simplificado da NF-e e o DANFE em PDF.
Não há transmissão à SEFAZ: o documento emitido em homologação leva a marca
d'água "SEM VALOR FISCAL". Em produção é obrigatório ter um certificado
digital configurado.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from lxml import etree
from cryptography.hazmat.primitives.serialization import pkcs12

from app.core.config import settings
from app.core.exceptions import ConfigurationError
from app.core.runtime_config import NfeSettings
from app.core.storage import upload_target
from app.utils.formatting import format_currency, format_date, to_decimal
from app.utils.pdf_renderer import (
    DocumentContent, DocumentKind, InfoBlock, TextSection, PdfRenderer, pdf_renderer
)
from .common import ClientInfo, LineItem, item_rows

logger = logging.getLogger(__name__)

NFE_FOLDER = "nfe"

WATERMARK_HOMOLOGATION = "HOMOLOGAÇÃO - SEM VALOR FISCAL"
WATERMARK_PRODUCTION = "PRODUÇÃO"

# Codigo UF IBGE
CODIGO_UF = {
    'AC': '12', 'AL': '27', 'AP': '16', 'AM': '13', 'BA': '29', 'CE': '23',
    'DF': '53', 'ES': '32', 'GO': '52', 'MA': '21', 'MT': '51', 'MS': '50',
    'MG': '31', 'PA': '15', 'PB': '25', 'PR': '41', 'PE': '26', 'PI': '22',
    'RJ': '33', 'RN': '24', 'RS': '43', 'RO': '11', 'RR': '14', 'SC': '42',
    'SP': '35', 'SE': '28', 'TO': '17'
}

# Namespace da NF-e 4.0
NFE_NAMESPACE = 'http://www.portalfiscal.inf.br/nfe'
NSMAP = {None: NFE_NAMESPACE}

MODELO_NFE = 55
SERIE_PADRAO = "1"


@dataclass
class InvoiceData:
    client_id: str
    client: ClientInfo
    amount: float
    description: str
    items: List[LineItem] = field(default_factory=list)
    issue_date: Optional[datetime] = None


@dataclass
class InvoiceResult:
    key: str
    xml: str
    pdf_url: str
    pdf_path: Path
    number: str
    series: str


def _somente_digitos(valor: str) -> str:
    return ''.join(c for c in (valor or '') if c.isdigit())


def calcular_dv_mod11(chave: str) -> str:
    """Calcula digito verificador modulo 11"""
    peso = 2
    soma = 0

    for digito in reversed(chave):
        soma += int(digito) * peso
        peso += 1
        if peso > 9:
            peso = 2

    dv = 11 - (soma % 11)
    if dv >= 10:
        return '0'
    return str(dv)


def gerar_chave_acesso(
    uf: str,
    data_emissao: datetime,
    cnpj: str,
    serie: int,
    numero: int,
    modelo: int = MODELO_NFE,
    tipo_emissao: int = 1,
    codigo_numerico: Optional[str] = None
) -> str:
    """
    Gera a chave de acesso da NF-e (44 digitos).

    Formato: cUF + AAMM + CNPJ + mod + serie + nNF + tpEmis + cNF + cDV
    """
    cuf = CODIGO_UF.get(uf, '35')
    aamm = data_emissao.strftime('%y%m')
    cnpj_limpo = _somente_digitos(cnpj).zfill(14)[-14:]

    if codigo_numerico is None:
        codigo_numerico = str(random.randint(10000000, 99999999))

    chave_sem_dv = (
        f"{cuf}{aamm}{cnpj_limpo}{str(modelo).zfill(2)}{str(serie).zfill(3)}"
        f"{str(numero).zfill(9)}{tipo_emissao}{codigo_numerico.zfill(8)}"
    )
    return f"{chave_sem_dv}{calcular_dv_mod11(chave_sem_dv)}"


def formatar_chave(chave: str) -> str:
    """Chave em grupos de 4 dígitos, como impressa no DANFE"""
    return ' '.join(chave[i:i + 4] for i in range(0, len(chave), 4))


def gerar_xml_nfe(
    data: InvoiceData,
    chave: str,
    numero: str,
    serie: str,
    emissao: datetime,
    producao: bool
) -> str:
    """XML simplificado (ide, emit, dest, det, total) sem assinatura"""
    ns = NFE_NAMESPACE

    nfe = etree.Element('{%s}NFe' % ns, nsmap=NSMAP)
    inf_nfe = etree.SubElement(nfe, '{%s}infNFe' % ns)
    inf_nfe.set('versao', '4.00')
    inf_nfe.set('Id', f'NFe{chave}')

    ide = etree.SubElement(inf_nfe, '{%s}ide' % ns)
    etree.SubElement(ide, '{%s}cUF' % ns).text = chave[:2]
    etree.SubElement(ide, '{%s}cNF' % ns).text = chave[35:43]
    etree.SubElement(ide, '{%s}natOp' % ns).text = 'PRESTACAO DE SERVICO'
    etree.SubElement(ide, '{%s}mod' % ns).text = str(MODELO_NFE)
    etree.SubElement(ide, '{%s}serie' % ns).text = serie
    etree.SubElement(ide, '{%s}nNF' % ns).text = numero
    etree.SubElement(ide, '{%s}dhEmi' % ns).text = emissao.strftime('%Y-%m-%dT%H:%M:%S-00:00')
    etree.SubElement(ide, '{%s}tpEmis' % ns).text = '1'
    etree.SubElement(ide, '{%s}cDV' % ns).text = chave[-1]
    etree.SubElement(ide, '{%s}tpAmb' % ns).text = '1' if producao else '2'

    emit = etree.SubElement(inf_nfe, '{%s}emit' % ns)
    etree.SubElement(emit, '{%s}CNPJ' % ns).text = _somente_digitos(settings.COMPANY_DOCUMENT)
    etree.SubElement(emit, '{%s}xNome' % ns).text = settings.COMPANY_NAME[:60]
    ender_emit = etree.SubElement(emit, '{%s}enderEmit' % ns)
    etree.SubElement(ender_emit, '{%s}xLgr' % ns).text = settings.COMPANY_ADDRESS[:60]
    etree.SubElement(ender_emit, '{%s}UF' % ns).text = settings.COMPANY_UF

    dest = etree.SubElement(inf_nfe, '{%s}dest' % ns)
    documento = _somente_digitos(data.client.document)
    if len(documento) == 11:
        etree.SubElement(dest, '{%s}CPF' % ns).text = documento
    elif len(documento) == 14:
        etree.SubElement(dest, '{%s}CNPJ' % ns).text = documento
    etree.SubElement(dest, '{%s}xNome' % ns).text = (data.client.name or 'CONSUMIDOR')[:60]
    if data.client.email:
        etree.SubElement(dest, '{%s}email' % ns).text = data.client.email

    itens = data.items or [LineItem(name=data.description or 'SERVICOS', unit_price=data.amount)]
    for i, item in enumerate(itens, start=1):
        det = etree.SubElement(inf_nfe, '{%s}det' % ns)
        det.set('nItem', str(i))
        prod = etree.SubElement(det, '{%s}prod' % ns)
        etree.SubElement(prod, '{%s}cProd' % ns).text = str(i)
        etree.SubElement(prod, '{%s}xProd' % ns).text = item.name[:120]
        etree.SubElement(prod, '{%s}uCom' % ns).text = item.unit[:6]
        etree.SubElement(prod, '{%s}qCom' % ns).text = f"{float(item.quantity):.4f}"
        etree.SubElement(prod, '{%s}vUnCom' % ns).text = f"{float(item.unit_price):.10f}"
        etree.SubElement(prod, '{%s}vProd' % ns).text = f"{to_decimal(item.total)}"

    total = etree.SubElement(inf_nfe, '{%s}total' % ns)
    icms_tot = etree.SubElement(total, '{%s}ICMSTot' % ns)
    etree.SubElement(icms_tot, '{%s}vProd' % ns).text = f"{to_decimal(data.amount)}"
    etree.SubElement(icms_tot, '{%s}vNF' % ns).text = f"{to_decimal(data.amount)}"

    if data.description:
        inf_adic = etree.SubElement(inf_nfe, '{%s}infAdic' % ns)
        etree.SubElement(inf_adic, '{%s}infCpl' % ns).text = data.description[:5000]

    return etree.tostring(nfe, encoding='unicode', pretty_print=True)


def build_invoice_document(
    data: InvoiceData,
    key: str,
    number: str,
    series: str,
    config: NfeSettings
) -> DocumentContent:
    watermark = WATERMARK_PRODUCTION if config.is_production else WATERMARK_HOMOLOGATION

    recipient = [("Nome / Razão Social", data.client.name)]
    if data.client.document:
        recipient.append(("CPF/CNPJ", data.client.document))
    if data.client.full_address:
        recipient.append(("Endereço", data.client.full_address))

    return DocumentContent(
        kind=DocumentKind.INVOICE,
        title="DANFE",
        subtitle="Documento Auxiliar da Nota Fiscal Eletrônica",
        blocks=[
            InfoBlock("CHAVE DE ACESSO", [
                ("Chave", formatar_chave(key)),
                ("Número / Série", f"{number} / {series}"),
                ("Emissão", format_date(data.issue_date)),
                ("Ambiente", config.environment_label),
            ]),
            InfoBlock("EMITENTE", [
                ("Razão Social", settings.COMPANY_NAME),
                ("CNPJ", settings.COMPANY_DOCUMENT),
                ("Endereço", f"{settings.COMPANY_ADDRESS} - {settings.COMPANY_CITY_STATE}"),
            ]),
            InfoBlock("DESTINATÁRIO", recipient),
        ],
        rows=item_rows(data.items, data.amount, fallback=data.description or "Serviços Diversos"),
        totals=[("VALOR TOTAL DA NOTA", format_currency(data.amount))],
        sections=[
            TextSection("DADOS DOS PRODUTOS / SERVIÇOS", [data.description or "-"]),
        ],
        watermark=watermark,
    )


def validate_certificate(data: bytes, password: Optional[str]) -> None:
    """
    Abre o certificado A1 (.pfx/.p12) com a senha informada.

    Raises:
        ConfigurationError: arquivo inválido ou senha incorreta
    """
    try:
        pkcs12.load_key_and_certificates(data, password.encode() if password else None)
    except ValueError as e:
        raise ConfigurationError("Certificado digital inválido ou senha incorreta") from e


class NFeService:
    """Servico para emissao de NF-e"""

    def __init__(self, renderer: Optional[PdfRenderer] = None):
        self.renderer = renderer or pdf_renderer

    async def generate(self, data: InvoiceData, config: NfeSettings) -> InvoiceResult:
        """
        Emite a NF-e com a configuração vigente da execução.

        Raises:
            ConfigurationError: produção sem certificado (nenhum arquivo é gravado)
            DocumentRenderError: falha ao gravar o DANFE
        """
        logger.info(f"Gerando NF-e para cliente {data.client_id} em {config.environment.value}")

        if config.is_production and not config.has_certificate:
            raise ConfigurationError("Certificado digital não configurado para emissão em Produção.")

        emissao = data.issue_date or datetime.utcnow()
        number = str(random.randint(1, 99999))
        series = SERIE_PADRAO

        key = gerar_chave_acesso(
            uf=settings.COMPANY_UF,
            data_emissao=emissao,
            cnpj=settings.COMPANY_DOCUMENT,
            serie=int(series),
            numero=int(number),
        )
        xml = gerar_xml_nfe(data, key, number, series, emissao, config.is_production)

        path, url = upload_target(NFE_FOLDER, f"NFe{key}.pdf")
        content = build_invoice_document(data, key, number, series, config)
        await asyncio.to_thread(self.renderer.render, content, path)

        logger.info(f"NF-e {number} emitida: {key}")
        return InvoiceResult(key=key, xml=xml, pdf_url=url, pdf_path=path, number=number, series=series)

    async def cancel(self, nfe_key: str, reason: str) -> bool:
        """Sem transmissão à SEFAZ: cancelamento apenas registrado"""
        logger.info(f"Cancelamento de NF-e solicitado: {nfe_key} ({reason})")
        return True


nfe_service = NFeService()

"""
Geração de recibos de pagamento
"""
import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from app.core.config import settings
from app.core.storage import unique_filename, upload_target
from app.utils.formatting import format_currency, format_date, amount_in_words
from app.utils.pdf_renderer import (
    DocumentContent, DocumentKind, InfoBlock, TextSection, PdfRenderer, pdf_renderer
)
from .common import ClientInfo, LineItem, item_rows

logger = logging.getLogger(__name__)

RECEIPTS_FOLDER = "receipts"


@dataclass
class ReceiptData:
    client: ClientInfo
    amount: float
    description: str
    number: str
    items: List[LineItem] = field(default_factory=list)
    payment_date: Optional[datetime] = None


def generate_receipt_number(now: Optional[datetime] = None) -> str:
    """Número no formato NNNN-AA (sequência aleatória + ano com 2 dígitos)"""
    now = now or datetime.utcnow()
    return f"{random.randint(0, 9999):04d}-{now.strftime('%y')}"


def build_receipt_document(data: ReceiptData) -> DocumentContent:
    issued = format_date(data.payment_date)
    total = format_currency(data.amount)

    client_fields = [("Cliente", data.client.name)]
    if data.client.document:
        client_fields.append(("CPF/CNPJ", data.client.document))
    if data.client.full_address:
        client_fields.append(("Endereço", data.client.full_address))

    return DocumentContent(
        kind=DocumentKind.RECEIPT,
        title=f"RECIBO Nº {data.number}",
        blocks=[
            InfoBlock("DADOS DO CLIENTE", client_fields),
            InfoBlock("DETALHES", [
                ("Data de Emissão", issued),
                ("Referente a", data.description),
            ]),
        ],
        rows=item_rows(data.items, data.amount),
        totals=[("Subtotal:", total), ("TOTAL:", total)],
        sections=[
            TextSection("PAGAMENTO", [
                "Forma: À vista",
                f"Vencimento: {issued}",
                f"Recebemos a importância de {total} ({amount_in_words(data.amount)}).",
            ]),
            TextSection("OBSERVAÇÕES", [
                "Garantia de 90 dias para serviços.",
            ]),
        ],
        signatures=[settings.COMPANY_NAME, data.client.name],
    )


class ReceiptService:
    """Renderiza recibos em uploads/receipts"""

    def __init__(self, renderer: Optional[PdfRenderer] = None):
        self.renderer = renderer or pdf_renderer

    async def render(self, data: ReceiptData, path: Optional[Path] = None) -> Tuple[Path, str]:
        """
        Gera o PDF do recibo e retorna (caminho, URL pública).
        Com `path`, regrava o arquivo existente (regeneração).
        """
        if path is None:
            path, url = upload_target(RECEIPTS_FOLDER, unique_filename("REC"))
        else:
            url = upload_target(RECEIPTS_FOLDER, path.name)[1]

        content = build_receipt_document(data)
        await asyncio.to_thread(self.renderer.render, content, path)
        logger.info(f"Recibo {data.number} gerado para {data.client.name}")
        return path, url


receipt_service = ReceiptService()

"""
Renderizador de documentos PDF (boleto, recibo, DANFE)

Um único desenho parametrizado: cada tipo de documento registra um
DocumentLayout (cores, fontes, margens, colunas) em LAYOUTS, e os serviços
montam um DocumentContent com os dados. O renderer não conhece regras de
negócio de nenhum documento.
"""
# [ Imports ]
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.colors import HexColor, white
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas
from reportlab.graphics.barcode.common import I2of5

from app.core.config import settings
from app.core.exceptions import DocumentRenderError

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4


class PageCanvas(canvas.Canvas):
    """Canvas que chama on_page antes de fechar cada página"""

    def __init__(self, *args, on_page=None, **kwargs):
        super().__init__(*args, **kwargs)
        self._on_page = on_page

    def showPage(self):
        if self._on_page:
            self._on_page(self)
        super().showPage()


class DocumentKind(str, Enum):
    BOLETO = "BOLETO"
    RECEIPT = "RECEIPT"
    INVOICE = "INVOICE"


# ==========================================
# DESCRITORES DE LAYOUT
# ==========================================

@dataclass(frozen=True)
class TableColumn:
    key: str
    label: str
    width: float
    align: str = "left"   # left | center | right


@dataclass(frozen=True)
class DocumentLayout:
    primary_color: str = '#0f3c66'
    accent_color: str = '#f3f4f6'
    text_color: str = '#1f2937'
    muted_color: str = '#6b7280'
    line_color: str = '#e5e7eb'

    font_regular: str = "Helvetica"
    font_bold: str = "Helvetica-Bold"
    company_size: int = 16
    title_size: int = 14
    section_size: int = 11
    body_size: int = 9

    margin_left: float = 50
    margin_right: float = 50
    margin_top: float = 45
    margin_bottom: float = 50

    header_align: str = "right"     # bloco da empresa
    title_band: bool = True         # faixa colorida atrás do título
    boxed_blocks: bool = False      # moldura nos blocos de informação
    block_columns: int = 2
    table_columns: Tuple[TableColumn, ...] = ()
    zebra_rows: bool = True
    highlight_total: bool = True

    watermark_size: int = 40
    watermark_color: str = '#dc2626'
    watermark_alpha: float = 0.3

    @property
    def content_width(self) -> float:
        return PAGE_WIDTH - self.margin_left - self.margin_right


ITEM_COLUMNS = (
    TableColumn("description", "DESCRIÇÃO", 235),
    TableColumn("quantity", "QTD", 50, "center"),
    TableColumn("unit", "UN", 40, "center"),
    TableColumn("unit_price", "UNITÁRIO", 80, "right"),
    TableColumn("total", "TOTAL", 90, "right"),
)

LAYOUTS: Dict[DocumentKind, DocumentLayout] = {
    DocumentKind.RECEIPT: DocumentLayout(
        table_columns=ITEM_COLUMNS,
    ),
    DocumentKind.INVOICE: DocumentLayout(
        primary_color='#111827',
        accent_color='#f9fafb',
        margin_left=40,
        margin_right=40,
        header_align="left",
        title_band=False,
        boxed_blocks=True,
        block_columns=1,
        table_columns=ITEM_COLUMNS,
        zebra_rows=False,
        highlight_total=False,
        watermark_size=30,
    ),
    DocumentKind.BOLETO: DocumentLayout(
        primary_color='#000000',
        accent_color='#ffffff',
        header_align="left",
        title_band=False,
        boxed_blocks=True,
        block_columns=2,
        highlight_total=False,
    ),
}


# ==========================================
# CONTEÚDO
# ==========================================

@dataclass
class InfoBlock:
    title: Optional[str]
    fields: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class TextSection:
    title: str
    lines: List[str] = field(default_factory=list)


@dataclass
class DocumentContent:
    kind: DocumentKind
    title: str
    subtitle: Optional[str] = None
    blocks: List[InfoBlock] = field(default_factory=list)
    rows: List[Dict[str, str]] = field(default_factory=list)
    totals: List[Tuple[str, str]] = field(default_factory=list)
    sections: List[TextSection] = field(default_factory=list)
    barcode: Optional[str] = None
    barcode_caption: Optional[str] = None
    signatures: List[str] = field(default_factory=list)
    watermark: Optional[str] = None


# ==========================================
# RENDERER
# ==========================================

class PdfRenderer:
    """Desenha um DocumentContent em um arquivo A4"""

    def __init__(self, layouts: Optional[Dict[DocumentKind, DocumentLayout]] = None,
                 compress: Optional[bool] = None):
        self.layouts = layouts or LAYOUTS
        self.compress = settings.PDF_PAGE_COMPRESSION if compress is None else compress

    def render(self, content: DocumentContent, path: Union[str, Path]) -> Path:
        """
        Gera o PDF em `path`, criando diretórios ausentes.
        Só retorna depois de canvas.save() gravar e fechar o arquivo.
        """
        path = Path(path)
        layout = self.layouts[content.kind]

        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            c = PageCanvas(
                str(path),
                pagesize=A4,
                pageCompression=1 if self.compress else 0,
                on_page=lambda page: self._draw_watermark(page, layout, content.watermark),
            )
            c.setTitle(content.title)
            c.setAuthor(settings.COMPANY_NAME)
            c.setSubject(content.kind.value)

            y = PAGE_HEIGHT - layout.margin_top
            y = self._draw_company(c, layout, y)
            y = self._draw_title(c, layout, content, y)
            y = self._draw_blocks(c, layout, content.blocks, y)
            if layout.table_columns:
                y = self._draw_table(c, layout, content, y)
            y = self._draw_totals(c, layout, content.totals, y)
            y = self._draw_sections(c, layout, content.sections, y)
            y = self._draw_barcode(c, layout, content, y)
            self._draw_signatures(c, layout, content.signatures, y)

            c.showPage()
            c.save()
        except OSError as e:
            logger.error(f"Erro ao gravar PDF {path}: {e}")
            raise DocumentRenderError(f"Erro ao gravar PDF {path.name}: {e}") from e

        logger.info(f"PDF {content.kind.value} gerado: {path}")
        return path

    # ------------------------------------------
    # Paginação
    # ------------------------------------------

    def _ensure_space(self, c, layout: DocumentLayout, y: float, needed: float) -> float:
        """Quebra a página quando o próximo elemento não cabe"""
        if y - needed >= layout.margin_bottom:
            return y
        self._draw_page_number(c, layout)
        c.showPage()
        return PAGE_HEIGHT - layout.margin_top

    def _draw_page_number(self, c, layout: DocumentLayout):
        c.setFont(layout.font_regular, 7)
        c.setFillColor(HexColor(layout.muted_color))
        c.drawRightString(PAGE_WIDTH - layout.margin_right, layout.margin_bottom / 2,
                          f"Página {c.getPageNumber()}")

    # ------------------------------------------
    # Blocos
    # ------------------------------------------

    def _draw_company(self, c, layout: DocumentLayout, y: float) -> float:
        lines = [
            settings.COMPANY_DOCUMENT,
            settings.COMPANY_ADDRESS,
            settings.COMPANY_CITY_STATE,
            settings.COMPANY_EMAIL,
        ]
        if layout.header_align == "right":
            x = PAGE_WIDTH - layout.margin_right
            draw = c.drawRightString
        else:
            x = layout.margin_left
            draw = c.drawString

        c.setFont(layout.font_bold, layout.company_size)
        c.setFillColor(HexColor(layout.primary_color))
        draw(x, y, settings.COMPANY_NAME)
        y -= layout.company_size + 4

        c.setFont(layout.font_regular, layout.body_size)
        c.setFillColor(HexColor(layout.text_color))
        for line in filter(None, lines):
            draw(x, y, line)
            y -= layout.body_size + 4

        c.setStrokeColor(HexColor(layout.primary_color))
        c.setLineWidth(1)
        c.line(layout.margin_left, y, PAGE_WIDTH - layout.margin_right, y)
        return y - 20

    def _draw_title(self, c, layout: DocumentLayout, content: DocumentContent, y: float) -> float:
        center = layout.margin_left + layout.content_width / 2
        band_height = layout.title_size + 16

        if layout.title_band:
            c.setFillColor(HexColor(layout.primary_color))
            c.rect(layout.margin_left, y - band_height, layout.content_width, band_height, stroke=0, fill=1)
            c.setFillColor(white)
        else:
            c.setFillColor(HexColor(layout.primary_color))

        c.setFont(layout.font_bold, layout.title_size)
        c.drawCentredString(center, y - band_height + 9, content.title)
        y -= band_height + 6

        if content.subtitle:
            c.setFont(layout.font_regular, layout.body_size + 1)
            c.setFillColor(HexColor(layout.text_color))
            c.drawCentredString(center, y - layout.body_size, content.subtitle)
            y -= layout.body_size + 8

        return y - 10

    def _block_height(self, layout: DocumentLayout, block: InfoBlock, width: float) -> float:
        height = (layout.section_size + 6) if block.title else 0
        for label, value in block.fields:
            lines = simpleSplit(value or "-", layout.font_bold, layout.body_size, width - 20)
            height += (layout.body_size + 3) * (1 + len(lines)) + 4
        return height + (12 if layout.boxed_blocks else 4)

    def _draw_blocks(self, c, layout: DocumentLayout, blocks: List[InfoBlock], y: float) -> float:
        columns = max(1, layout.block_columns)
        gap = 15
        width = (layout.content_width - gap * (columns - 1)) / columns

        for start in range(0, len(blocks), columns):
            row = blocks[start:start + columns]
            row_height = max(self._block_height(layout, b, width) for b in row)
            y = self._ensure_space(c, layout, y, row_height)

            for index, block in enumerate(row):
                x = layout.margin_left + index * (width + gap)
                self._draw_block(c, layout, block, x, y, width, row_height)

            y -= row_height + 10

        return y

    def _draw_block(self, c, layout: DocumentLayout, block: InfoBlock,
                    x: float, y: float, width: float, height: float):
        if layout.boxed_blocks:
            c.setStrokeColor(HexColor(layout.primary_color))
            c.setLineWidth(0.8)
            c.rect(x, y - height, width, height, stroke=1, fill=0)

        inner_x = x + (10 if layout.boxed_blocks else 0)
        cursor = y - (layout.section_size + 2 if layout.boxed_blocks else layout.section_size)

        if block.title:
            c.setFont(layout.font_bold, layout.section_size)
            c.setFillColor(HexColor(layout.primary_color))
            c.drawString(inner_x, cursor, block.title)
            cursor -= layout.section_size + 6

        for label, value in block.fields:
            c.setFont(layout.font_regular, layout.body_size - 1)
            c.setFillColor(HexColor(layout.muted_color))
            c.drawString(inner_x, cursor, label)
            cursor -= layout.body_size + 3

            c.setFont(layout.font_bold, layout.body_size)
            c.setFillColor(HexColor(layout.text_color))
            for line in simpleSplit(value or "-", layout.font_bold, layout.body_size, width - 20):
                c.drawString(inner_x, cursor, line)
                cursor -= layout.body_size + 3
            cursor -= 4

    def _draw_table_header(self, c, layout: DocumentLayout, y: float) -> float:
        c.setFillColor(HexColor(layout.accent_color))
        c.rect(layout.margin_left, y - 20, layout.content_width, 20, stroke=0, fill=1)
        c.setFont(layout.font_bold, layout.body_size)
        c.setFillColor(HexColor(layout.primary_color))

        x = layout.margin_left
        for column in layout.table_columns:
            self._draw_cell(c, column, x, y - 14, column.label)
            x += column.width
        return y - 26

    def _draw_cell(self, c, column: TableColumn, x: float, y: float, text: str):
        if column.align == "right":
            c.drawRightString(x + column.width - 6, y, text)
        elif column.align == "center":
            c.drawCentredString(x + column.width / 2, y, text)
        else:
            c.drawString(x + 6, y, text)

    def _draw_table(self, c, layout: DocumentLayout, content: DocumentContent, y: float) -> float:
        y = self._ensure_space(c, layout, y, 60)
        y = self._draw_table_header(c, layout, y)
        line_height = layout.body_size + 4

        for index, row in enumerate(content.rows):
            first = layout.table_columns[0]
            wrapped = simpleSplit(row.get(first.key, ""), layout.font_regular,
                                  layout.body_size, first.width - 12) or [""]
            row_height = line_height * len(wrapped) + 6

            if y - row_height < layout.margin_bottom:
                y = self._ensure_space(c, layout, y, row_height + 30)
                y = self._draw_table_header(c, layout, y)

            if layout.zebra_rows and index % 2 == 0:
                c.setFillColor(HexColor(layout.accent_color))
                c.rect(layout.margin_left, y - row_height + 6, layout.content_width, row_height, stroke=0, fill=1)

            c.setFont(layout.font_regular, layout.body_size)
            c.setFillColor(HexColor(layout.text_color))

            x = layout.margin_left
            for column in layout.table_columns:
                if column is first:
                    line_y = y
                    for line in wrapped:
                        self._draw_cell(c, column, x, line_y, line)
                        line_y -= line_height
                else:
                    self._draw_cell(c, column, x, y, row.get(column.key, ""))
                x += column.width

            y -= row_height

        c.setStrokeColor(HexColor(layout.line_color))
        c.setLineWidth(0.5)
        c.line(layout.margin_left, y, PAGE_WIDTH - layout.margin_right, y)
        return y - 12

    def _draw_totals(self, c, layout: DocumentLayout, totals: List[Tuple[str, str]], y: float) -> float:
        if not totals:
            return y
        y = self._ensure_space(c, layout, y, 30 * len(totals))

        right = PAGE_WIDTH - layout.margin_right
        label_x = right - 180

        for index, (label, value) in enumerate(totals):
            last = index == len(totals) - 1
            if last and layout.highlight_total:
                c.setFillColor(HexColor(layout.primary_color))
                c.rect(label_x - 10, y - 8, right - label_x + 10, 24, stroke=0, fill=1)
                c.setFillColor(white)
                c.setFont(layout.font_bold, layout.section_size + 1)
            else:
                c.setFillColor(HexColor(layout.text_color))
                c.setFont(layout.font_bold if last else layout.font_regular, layout.body_size + 1)

            c.drawString(label_x, y, label)
            c.drawRightString(right - 6, y, value)
            y -= 26

        return y - 10

    def _draw_sections(self, c, layout: DocumentLayout, sections: List[TextSection], y: float) -> float:
        for section in sections:
            lines = []
            for line in section.lines:
                lines.extend(simpleSplit(line, layout.font_regular, layout.body_size, layout.content_width))
            y = self._ensure_space(c, layout, y, layout.section_size + 8 + len(lines) * (layout.body_size + 3))

            c.setFont(layout.font_bold, layout.section_size)
            c.setFillColor(HexColor(layout.primary_color))
            c.drawString(layout.margin_left, y, section.title)
            y -= layout.section_size + 6

            c.setFont(layout.font_regular, layout.body_size)
            c.setFillColor(HexColor(layout.text_color))
            for line in lines:
                c.drawString(layout.margin_left, y, line)
                y -= layout.body_size + 3
            y -= 10
        return y

    def _draw_barcode(self, c, layout: DocumentLayout, content: DocumentContent, y: float) -> float:
        if not content.barcode:
            return y
        y = self._ensure_space(c, layout, y, 70)

        barcode = I2of5(content.barcode, barWidth=0.9, barHeight=13 * mm,
                        checksum=0, bearers=0, quiet=0)
        barcode.drawOn(c, layout.margin_left, y - 13 * mm)
        y -= 13 * mm + 12

        if content.barcode_caption:
            c.setFont(layout.font_regular, 8)
            c.setFillColor(HexColor(layout.text_color))
            c.drawString(layout.margin_left, y, content.barcode_caption)
            y -= 14
        return y - 10

    def _draw_signatures(self, c, layout: DocumentLayout, signatures: List[str], y: float):
        if not signatures:
            return
        signature_y = min(y - 50, 110)
        if signature_y < layout.margin_bottom:
            self._draw_page_number(c, layout)
            c.showPage()
            signature_y = PAGE_HEIGHT / 2

        slot = layout.content_width / len(signatures)
        c.setStrokeColor(HexColor(layout.text_color))
        c.setLineWidth(1)
        for index, name in enumerate(signatures):
            left = layout.margin_left + index * slot + 15
            right = left + slot - 30
            c.line(left, signature_y, right, signature_y)
            c.setFont(layout.font_bold, 8)
            c.setFillColor(HexColor(layout.text_color))
            c.drawCentredString((left + right) / 2, signature_y - 12, name.upper())

    def _draw_watermark(self, c, layout: DocumentLayout, text: Optional[str]):
        """Marca d'água diagonal; aplicada a toda página pelo PageCanvas"""
        if not text:
            return
        c.saveState()
        c.translate(PAGE_WIDTH / 2, PAGE_HEIGHT / 2)
        c.rotate(45)
        c.setFont(layout.font_bold, layout.watermark_size)
        c.setFillColor(HexColor(layout.watermark_color))
        c.setFillAlpha(layout.watermark_alpha)
        c.drawCentredString(0, 0, text)
        c.restoreState()


# Instancia global
pdf_renderer = PdfRenderer()

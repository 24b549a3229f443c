import re

import pytest

from app.core.exceptions import DocumentRenderError
from app.utils.pdf_renderer import (
    LAYOUTS, DocumentContent, DocumentKind, InfoBlock, PdfRenderer, TextSection
)


def _receipt_content(**overrides) -> DocumentContent:
    data = dict(
        kind=DocumentKind.RECEIPT,
        title="RECIBO 0001-24",
        blocks=[InfoBlock("DADOS DO CLIENTE", [("Cliente", "Empresa Teste LTDA")])],
        rows=[{"description": "Suporte tecnico", "total": "R$ 150.50"}],
        totals=[("TOTAL:", "R$ 150.50")],
        sections=[TextSection("OBSERVACOES", ["Pagamento a vista"])],
        signatures=["Portal", "Cliente"],
    )
    data.update(overrides)
    return DocumentContent(**data)


def test_render_writes_pdf_with_text(tmp_path):
    path = PdfRenderer(compress=False).render(_receipt_content(), tmp_path / "out" / "recibo.pdf")

    assert path.exists()
    pdf = path.read_bytes()
    assert pdf.startswith(b"%PDF")
    assert b"R$ 150.50" in pdf
    assert b"0001-24" in pdf
    assert b"Empresa Teste LTDA" in pdf


def test_render_draws_watermark(tmp_path):
    content = _receipt_content(kind=DocumentKind.INVOICE, watermark="SEM VALOR FISCAL")
    pdf = PdfRenderer(compress=False).render(content, tmp_path / "nfe.pdf").read_bytes()

    assert b"SEM VALOR FISCAL" in pdf


def test_render_boleto_with_barcode(tmp_path):
    content = DocumentContent(
        kind=DocumentKind.BOLETO,
        title="BOLETO",
        barcode="0019" + "1" * 40,
        barcode_caption="00190.00009 00000.000000 00000.000000 1 00000000015050",
    )
    path = PdfRenderer(compress=False).render(content, tmp_path / "boleto.pdf")

    assert path.stat().st_size > 0
    assert b"00000000015050" in path.read_bytes()


def test_render_long_table_breaks_pages(tmp_path):
    rows = [{"description": f"Item {i}", "total": "R$ 1.00"} for i in range(120)]
    path = PdfRenderer(compress=False).render(_receipt_content(rows=rows), tmp_path / "longo.pdf")

    pdf = path.read_bytes()
    assert b"Item 0" in pdf
    assert b"Item 119" in pdf


def test_render_io_failure_raises_render_error(tmp_path):
    blocker = tmp_path / "arquivo"
    blocker.write_text("não é diretório")

    with pytest.raises(DocumentRenderError):
        PdfRenderer().render(_receipt_content(), blocker / "recibo.pdf")


def test_layouts_cover_every_document_kind():
    assert set(LAYOUTS) == set(DocumentKind)
    assert LAYOUTS[DocumentKind.RECEIPT].table_columns
    assert LAYOUTS[DocumentKind.BOLETO].table_columns == ()


def test_watermark_repeats_on_every_page(tmp_path):
    rows = [{"description": f"Item {i}", "total": "R$ 1.00"} for i in range(120)]
    content = _receipt_content(kind=DocumentKind.INVOICE, rows=rows, watermark="SEM VALOR FISCAL")
    pdf = PdfRenderer(compress=False).render(content, tmp_path / "danfe.pdf").read_bytes()

    pages = len(re.findall(rb"/Type /Page(?!s)", pdf))
    assert pages >= 2
    assert pdf.count(b"(SEM VALOR FISCAL)") == pages

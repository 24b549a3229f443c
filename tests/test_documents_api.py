import re
from datetime import datetime

from app.core.storage import path_from_url
from app.models import Invoice


async def test_admin_creates_receipt_with_generated_number(http, admin_headers, client_record):
    response = await http.post("/api/receipts", headers=admin_headers, json={
        "client_id": client_record.id,
        "amount": 150.50,
        "description": "Suporte técnico",
        "issue_date": "2024-05-02T10:00:00",
    })

    assert response.status_code == 201
    data = response.json()
    assert re.fullmatch(r"\d{4}-\d{2}", data["number"])
    assert data["issue_date"] == "2024-05-02T10:00:00"
    pdf = path_from_url(data["pdf_path"]).read_bytes()
    assert b"R$ 150.50" in pdf
    assert data["number"].encode() in pdf


async def test_receipt_with_explicit_number(http, admin_headers, client_record):
    response = await http.post("/api/receipts", headers=admin_headers, json={
        "client_id": client_record.id,
        "amount": 80,
        "number": "0001-24",
    })

    assert response.status_code == 201
    assert b"0001-24" in path_from_url(response.json()["pdf_path"]).read_bytes()


async def test_regenerate_rewrites_same_file(http, admin_headers, client_record):
    created = (await http.post("/api/receipts", headers=admin_headers, json={
        "client_id": client_record.id,
        "amount": 42,
    })).json()
    path = path_from_url(created["pdf_path"])
    path.unlink()

    response = await http.post(f"/api/receipts/{created['id']}/regenerate", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["pdf_path"] == created["pdf_path"]
    assert path.exists()


async def test_client_lists_only_own_receipts(http, admin_headers, client_headers, client_record, other_client):
    for client_id in (client_record.id, other_client.id):
        await http.post("/api/receipts", headers=admin_headers, json={"client_id": client_id, "amount": 10})

    response = await http.get("/api/receipts", headers=client_headers)

    assert [r["client_id"] for r in response.json()] == [client_record.id]


async def test_invoice_crud(http, admin_headers, client_record):
    created = await http.post("/api/invoices", headers=admin_headers, json={
        "client_id": client_record.id,
        "number": "1234",
        "amount": 300,
        "description": "Consultoria",
    })
    assert created.status_code == 201
    invoice_id = created.json()["id"]
    assert created.json()["series"] == "1"

    updated = await http.put(f"/api/invoices/{invoice_id}", headers=admin_headers, json={"amount": 320})
    assert updated.json()["amount"] == 320

    deleted = await http.delete(f"/api/invoices/{invoice_id}", headers=admin_headers)
    assert deleted.status_code == 200

    missing = await http.get(f"/api/invoices/{invoice_id}", headers=admin_headers)
    assert missing.status_code == 404


async def test_invoice_owner_access(http, db, client_headers, client_record, other_client):
    own = Invoice(client_id=client_record.id, number="1", amount=10, issue_date=datetime(2024, 5, 1))
    foreign = Invoice(client_id=other_client.id, number="2", amount=20, issue_date=datetime(2024, 5, 2))
    db.add_all([own, foreign])
    await db.commit()

    listing = await http.get("/api/invoices", headers=client_headers)
    allowed = await http.get(f"/api/invoices/{own.id}", headers=client_headers)
    denied = await http.get(f"/api/invoices/{foreign.id}", headers=client_headers)

    assert [i["number"] for i in listing.json()] == ["1"]
    assert allowed.status_code == 200
    assert denied.status_code == 403


async def test_client_cannot_create_invoice(http, client_headers, client_record):
    response = await http.post("/api/invoices", headers=client_headers, json={
        "client_id": client_record.id,
        "number": "1",
        "amount": 10,
    })

    assert response.status_code == 403


async def test_invoice_pdf_path_is_not_editable(http, db, admin_headers, client_record, tmp_path):
    victim = tmp_path / "victim.txt"
    victim.write_text("fora de uploads")
    invoice = Invoice(
        client_id=client_record.id,
        number="77",
        amount=10,
        nfe_pdf="/uploads/nfe/NFe77.pdf",
        issue_date=datetime(2024, 5, 1),
    )
    db.add(invoice)
    await db.commit()

    updated = await http.put(
        f"/api/invoices/{invoice.id}", headers=admin_headers, json={"nfe_pdf": "/uploads/../victim.txt"}
    )
    assert updated.json()["nfe_pdf"] == "/uploads/nfe/NFe77.pdf"


async def test_invoice_delete_never_leaves_uploads(http, db, admin_headers, client_record, tmp_path):
    victim = tmp_path / "victim.txt"
    victim.write_text("fora de uploads")
    invoice = Invoice(
        client_id=client_record.id,
        number="78",
        amount=10,
        nfe_pdf="/uploads/../victim.txt",
        issue_date=datetime(2024, 5, 1),
    )
    db.add(invoice)
    await db.commit()

    response = await http.delete(f"/api/invoices/{invoice.id}", headers=admin_headers)

    assert response.status_code == 200
    assert victim.exists()

from sqlalchemy import func, select

from app.models import Boleto, Client, User


async def test_admin_creates_client_with_user(http, admin_headers):
    response = await http.post("/api/clients", headers=admin_headers, json={
        "email": "contato@acme.com.br",
        "password": "acme1234",
        "name": "Carlos Acme",
        "company_name": "ACME Comércio LTDA",
        "cnpj": "11.222.333/0001-44",
        "city": "Manaus",
        "state": "AM",
    })

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "contato@acme.com.br"
    assert data["name"] == "Carlos Acme"
    assert data["company_name"] == "ACME Comércio LTDA"

    login = await http.post("/api/auth/login", json={"email": "contato@acme.com.br", "password": "acme1234"})
    assert login.json()["user"]["client_id"] == data["id"]


async def test_client_cannot_list_all(http, client_headers):
    response = await http.get("/api/clients", headers=client_headers)

    assert response.status_code == 403


async def test_admin_search(http, admin_headers, client_record, other_client):
    response = await http.get("/api/clients", headers=admin_headers, params={"search": "Empresa"})

    assert [c["id"] for c in response.json()] == [client_record.id]


async def test_client_reads_and_updates_own_record(http, client_headers, client_record):
    response = await http.put(f"/api/clients/{client_record.id}", headers=client_headers, json={
        "phone": "(92) 99999-0000",
        "name": "Maria S. Souza",
    })

    assert response.status_code == 200
    assert response.json()["phone"] == "(92) 99999-0000"
    assert response.json()["name"] == "Maria S. Souza"


async def test_client_cannot_read_other_client(http, client_headers, other_client):
    response = await http.get(f"/api/clients/{other_client.id}", headers=client_headers)

    assert response.status_code == 403


async def test_update_rejects_taken_email(http, admin_headers, client_record, other_client):
    response = await http.put(f"/api/clients/{client_record.id}", headers=admin_headers, json={
        "email": "outro@cliente.com",
    })

    assert response.status_code == 400


async def test_delete_removes_user_and_documents(http, db, admin_headers, boleto):
    client_id = boleto.client_id

    response = await http.delete(f"/api/clients/{client_id}", headers=admin_headers)

    assert response.status_code == 200
    assert await db.scalar(select(func.count()).select_from(Client)) == 0
    assert await db.scalar(select(func.count()).select_from(Boleto)) == 0
    assert await db.scalar(
        select(func.count()).select_from(User).where(User.role == "CLIENT")
    ) == 0


async def test_unknown_client_404(http, admin_headers):
    response = await http.get("/api/clients/nao-existe", headers=admin_headers)

    assert response.status_code == 404
    assert response.json() == {"error": "Cliente não encontrado"}

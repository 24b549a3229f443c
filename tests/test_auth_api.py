from app.core import settings


async def test_register_client_creates_client_record(http):
    response = await http.post("/api/auth/register", json={
        "email": "novo@cliente.com",
        "password": "segredo123",
        "name": "Novo Cliente",
    })

    assert response.status_code == 201
    data = response.json()
    assert data["access_token"]
    assert data["user"]["role"] == "CLIENT"
    assert data["user"]["client_id"]


async def test_register_duplicate_email(http, client_record):
    response = await http.post("/api/auth/register", json={
        "email": "financeiro@empresa.com.br",
        "password": "segredo123",
        "name": "Duplicado",
    })

    assert response.status_code == 400
    assert response.json() == {"error": "Email já cadastrado"}


async def test_login_and_me(http, client_record):
    login = await http.post("/api/auth/login", json={
        "email": "financeiro@empresa.com.br",
        "password": "cliente123",
    })
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = await http.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert me.status_code == 200
    assert me.json()["email"] == "financeiro@empresa.com.br"
    assert me.json()["client_id"] == client_record.id


async def test_login_wrong_password(http, client_record):
    response = await http.post("/api/auth/login", json={
        "email": "financeiro@empresa.com.br",
        "password": "errada123",
    })

    assert response.status_code == 401


async def test_invalid_token_rejected(http, database):
    response = await http.get("/api/auth/me", headers={"Authorization": "Bearer invalido"})

    assert response.status_code == 401
    assert response.json() == {"error": "Token inválido ou expirado"}


async def test_validation_error_format(http, database):
    response = await http.post("/api/auth/login", json={"email": "nao-e-email"})

    assert response.status_code == 422
    body = response.json()
    assert body["error"]
    assert body["details"]


async def test_setup_creates_admin_once(http, database):
    first = await http.post("/api/auth/setup")
    second = await http.post("/api/auth/setup")

    assert first.status_code == 200
    assert first.json()["email"] == settings.ADMIN_EMAIL
    assert second.status_code == 400


async def test_security_headers(http, database):
    response = await http.get("/health")

    assert response.json() == {"status": "healthy"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"

import os
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

from formbuilder.db import Database  # noqa: E402
from formbuilder.main import create_app  # noqa: E402

PASSWORD = "correct horse battery staple"


@pytest.fixture
def database(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'test.db'}")
    database.init()
    yield database
    database.shutdown()


@pytest.fixture
def client(database):
    app = create_app(database)
    with TestClient(app) as test_client:
        yield test_client


def _register_and_login(client, name, email):
    response = client.post("/api/auth/register", json={"name": name, "email": email, "password": PASSWORD})
    assert response.status_code == 201, response.text
    user = response.json()
    login = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert login.status_code == 200, login.text
    token = login.json()["token"]
    return SimpleNamespace(
        id=user["id"],
        email=email,
        role=user["role"],
        token=token,
        headers={"Authorization": f"Bearer {token}"},
    )


@pytest.fixture
def accounts(client):
    """An admin (registered first), and two ordinary users alice and bob."""
    admin = _register_and_login(client, "Admin", "admin@example.com")
    alice = _register_and_login(client, "Alice", "alice@example.com")
    bob = _register_and_login(client, "Bob", "bob@example.com")
    assert admin.role == "admin"
    assert alice.role == bob.role == "user"
    return SimpleNamespace(admin=admin, alice=alice, bob=bob)


@pytest.fixture
def create_form(client):
    def _create(headers, title="Survey", **extra):
        payload = {
            "title": title,
            "fields": [{"name": "q1", "label": "Question 1", "type": "text", "required": True}],
        }
        payload.update(extra)
        response = client.post("/api/forms", json=payload, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create

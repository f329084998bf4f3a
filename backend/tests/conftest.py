import os
import tempfile
from uuid import uuid4

# Banco de testes isolado (sqlite em /tmp) + segredo JWT fixo.
# Precisa acontecer ANTES de qualquer import de app.* (settings é lido no import).
_TEST_DB = os.path.join(tempfile.mkdtemp(prefix="ledger-tests-"), "test.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB}"
os.environ["AUTH_JWT_SECRET"] = "test-secret-0123456789-abcdefghijklmnop"
os.environ["ENV"] = "lab"

import pytest
from fastapi.testclient import TestClient


def _import_all_models():
    # Import explícito dos models para registrar no SQLAlchemy metadata
    # (sem isso, create_all() cria 0 tabelas e os testes quebram)
    import app.models.company  # noqa: F401
    import app.models.company_user  # noqa: F401
    import app.models.sale  # noqa: F401
    import app.models.transaction  # noqa: F401


@pytest.fixture(scope="session", autouse=True)
def _ensure_tables_exist():
    from app.db import Base, engine

    _import_all_models()
    Base.metadata.create_all(bind=engine)
    yield
    engine.dispose()


@pytest.fixture
def db():
    from app.db import SessionLocal

    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


def _new_company(db):
    from app.models.company import Company

    c = Company(name=f"Empresa Teste {uuid4().hex[:8]}")
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture
def company(db):
    return _new_company(db)


@pytest.fixture
def other_company(db):
    return _new_company(db)


@pytest.fixture
def store(db):
    from app.ledger.store import SqlRecordStore

    return SqlRecordStore(db)


@pytest.fixture(scope="session")
def client():
    from app.main import app

    with TestClient(app) as c:
        yield c


def _login_header(client, db, company_id: int) -> dict:
    from app.core.security import hash_password
    from app.models.company_user import CompanyUser

    email = f"user-{uuid4().hex[:8]}@teste.com"
    db.add(CompanyUser(company_id=company_id, email=email, password_hash=hash_password("dev")))
    db.commit()

    resp = client.post("/auth/login", json={"username": email, "password": "dev"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def auth_header(client, db, company):
    return _login_header(client, db, company.id)


@pytest.fixture
def other_auth_header(client, db, other_company):
    return _login_header(client, db, other_company.id)

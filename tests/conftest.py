import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

_TMP_DIR = Path(tempfile.mkdtemp(prefix="appconfig-tests-"))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP_DIR / 'appconfig_test.db'}")
os.environ.setdefault("CLERK_JWT_ISSUER", "https://clerk.test")
os.environ.setdefault("CLERK_JWKS_URL", "https://clerk.test/.well-known/jwks.json")
os.environ.setdefault("BACKEND_CORS_ORIGINS", '["http://localhost:5173"]')
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("MEDIA_STORAGE_LOCAL_DIR", str(_TMP_DIR / "media"))

from fastapi.testclient import TestClient

from appconfig.auth.dependencies import AuthContext, get_current_user
from appconfig.db import models  # noqa: F401
from appconfig.db.base import Base, SessionLocal, engine
from appconfig.db.deps import get_session
from appconfig.db.models import Org
from appconfig.main import app


TEST_ORG_ID = "00000000-0000-0000-0000-000000000001"
OTHER_ORG_ID = "00000000-0000-0000-0000-000000000002"


@pytest.fixture()
def db_session():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    session.add(Org(id=TEST_ORG_ID, name="Test Org", external_id="org_test"))
    session.add(Org(id=OTHER_ORG_ID, name="Other Org", external_id="org_other"))
    session.commit()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def auth_context() -> AuthContext:
    return AuthContext(user_id="user_admin", org_id=TEST_ORG_ID, role="org:admin", email="admin@example.test")


@pytest.fixture()
def override_dependencies(db_session, auth_context):
    def get_session_override():
        try:
            yield db_session
        finally:
            pass

    def get_user_override():
        return auth_context

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_current_user] = get_user_override
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def api_client(override_dependencies):
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def create_application(api_client):
    def _create(slug: str = "acme-mobile", name: str = "Acme Mobile", **extra) -> dict:
        response = api_client.post("/api/v1/admin/applications", json={"name": name, "slug": slug, **extra})
        assert response.status_code == 201, response.text
        return response.json()

    return _create

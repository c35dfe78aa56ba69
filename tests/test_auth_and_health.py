import time

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import HTTPException
from fastapi.testclient import TestClient
from jose import jwk, jwt

from appconfig.auth import clerk
from appconfig.auth.dependencies import AuthContext, _role_from_claims, get_current_user
from appconfig.config import settings
from appconfig.db.base import SessionLocal
from appconfig.db.models import Org
from appconfig.db.repositories.orgs import OrgsRepository
from appconfig.main import app

KID = "test-key"


@pytest.fixture()
def signing_key(monkeypatch):
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    public_jwk = {**jwk.construct(public_pem, algorithm="RS256").to_dict(), "kid": KID, "alg": "RS256"}

    monkeypatch.setattr(clerk, "_refresh_signing_keys", lambda: clerk._keys.replace({"keys": [public_jwk]}))
    monkeypatch.setattr(settings, "CLERK_AUDIENCE", [])
    clerk._keys.clear()
    yield private_pem
    clerk._keys.clear()


def _token(private_pem: str, **claims) -> str:
    now = int(time.time())
    payload = {"iss": settings.CLERK_JWT_ISSUER, "iat": now, "exp": now + 300, **claims}
    return jwt.encode(payload, private_pem, algorithm="RS256", headers={"kid": KID})


def test_role_is_read_from_claims_or_metadata():
    assert _role_from_claims({"org_role": "org:admin"}) == "org:admin"
    assert _role_from_claims({"public_metadata": {"role": "admin"}}) == "admin"
    assert _role_from_claims({"metadata": {"role": ""}}) is None


def test_admin_roles_come_from_settings():
    assert AuthContext(user_id="u", org_id="o", role="org:admin").is_admin
    assert not AuthContext(user_id="u", org_id="o", role="org:member").is_admin
    assert not AuthContext(user_id="u", org_id="o").is_admin


def test_verify_token_accepts_valid_signature(signing_key):
    claims = clerk.verify_clerk_token(_token(signing_key, sub="user_1", org_id="org_ext"))
    assert claims["sub"] == "user_1"


def test_verify_token_rejects_expired_and_foreign_tokens(signing_key):
    expired = _token(signing_key, sub="user_1", exp=int(time.time()) - 10)
    with pytest.raises(HTTPException) as excinfo:
        clerk.verify_clerk_token(expired)
    assert excinfo.value.detail == "Token expired"

    unknown_kid = jwt.encode({"sub": "user_1"}, signing_key, algorithm="RS256", headers={"kid": "other"})
    with pytest.raises(HTTPException) as excinfo:
        clerk.verify_clerk_token(unknown_kid)
    assert excinfo.value.status_code == 401


def test_bearer_token_resolves_org_from_external_id(override_dependencies, db_session, signing_key):
    app.dependency_overrides.pop(get_current_user)
    token = _token(signing_key, sub="user_1", org_id="org_test", org_role="org:admin")

    with TestClient(app) as client:
        response = client.get("/api/v1/admin/applications", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json() == []

        no_org = _token(signing_key, sub="user_1")
        missing = client.get("/api/v1/admin/applications", headers={"Authorization": f"Bearer {no_org}"})
        assert missing.status_code == 403

        fresh = _token(signing_key, sub="user_2", org_id="org_new", org_slug="acme", org_role="org:admin")
        for _ in range(2):
            assert client.get("/api/v1/admin/applications", headers={"Authorization": f"Bearer {fresh}"}).status_code == 200

    created = db_session.query(Org).filter(Org.external_id == "org_new").all()
    assert [org.name for org in created] == ["acme"]


def test_org_without_slug_gets_a_readable_name(db_session):
    org, created = OrgsRepository(db_session).get_or_create_for_clerk(external_id="org_plain")
    assert created
    assert org.name == "Clerk org org_plain"

    again, created_again = OrgsRepository(db_session).get_or_create_for_clerk(external_id="org_plain", slug="late")
    assert (again.id, again.name, created_again) == (org.id, "Clerk org org_plain", False)


def test_concurrent_first_request_reuses_the_winning_org(db_session, monkeypatch):
    repo = OrgsRepository(db_session)
    original_lookup = OrgsRepository.get_by_external_id
    lookups: list[str] = []

    def racing_lookup(self, external_id):
        lookups.append(external_id)
        if len(lookups) == 1:
            other = SessionLocal()
            try:
                other.add(Org(name="winner", external_id=external_id))
                other.commit()
            finally:
                other.close()
            return None
        return original_lookup(self, external_id)

    monkeypatch.setattr(OrgsRepository, "get_by_external_id", racing_lookup)

    org, created = repo.get_or_create_for_clerk(external_id="org_race", slug="loser")
    assert not created
    assert org.name == "winner"
    assert db_session.query(Org).filter(Org.external_id == "org_race").count() == 1


def test_health_endpoints(api_client, monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", None)

    assert api_client.get("/health").json() == {"ok": True}
    assert api_client.get("/health/redis").json() == {"redis": "disabled"}

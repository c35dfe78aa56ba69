from fastapi.testclient import TestClient

from appconfig.auth.dependencies import AuthContext, get_current_user
from appconfig.db.models import Application
from appconfig.main import app

TEST_ORG_ID = "00000000-0000-0000-0000-000000000001"


def test_create_application_seeds_default_branding(create_application):
    application = create_application(branding={"primaryColor": "#111111"})

    assert application["slug"] == "acme-mobile"
    assert application["branding_revision"] == 1
    assert application["branding"]["appName"] == "Acme Mobile"
    assert application["branding"]["primaryColor"] == "#111111"
    # Untouched defaults survive the merge.
    assert application["branding"]["secondaryColor"] == "#6b7280"
    assert application["branding"]["flows"]["survey"]["enabled"] is False


def test_duplicate_slug_is_rejected_without_second_row(api_client, create_application, db_session):
    create_application()

    response = api_client.post("/api/v1/admin/applications", json={"name": "Copy", "slug": "acme-mobile"})

    assert response.status_code == 409
    assert response.json() == {"detail": "Slug already exists"}
    assert db_session.query(Application).filter(Application.slug == "acme-mobile").count() == 1


def test_invalid_slug_format_is_a_schema_error(api_client):
    response = api_client.post("/api/v1/admin/applications", json={"name": "Bad", "slug": "Not A Slug"})
    assert response.status_code == 422


def test_slug_is_immutable(api_client, create_application):
    application = create_application()

    response = api_client.put(
        f"/api/v1/admin/applications/{application['id']}",
        json={"slug": "renamed-app"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Slug is immutable"

    same_slug = api_client.put(
        f"/api/v1/admin/applications/{application['id']}",
        json={"slug": "acme-mobile", "name": "Acme Renamed"},
    )
    assert same_slug.status_code == 200
    assert same_slug.json()["name"] == "Acme Renamed"


def test_deactivated_application_is_hidden_from_default_list(api_client, create_application):
    application = create_application()

    response = api_client.delete(f"/api/v1/admin/applications/{application['id']}")
    assert response.status_code == 200
    assert response.json() == {"id": application["id"], "isActive": False}

    assert api_client.get("/api/v1/admin/applications").json() == []
    listed = api_client.get("/api/v1/admin/applications", params={"includeInactive": True}).json()
    assert [item["id"] for item in listed] == [application["id"]]


def test_partial_branding_update_merges_into_stored_document(api_client, create_application):
    application = create_application()
    url = f"/api/v1/admin/applications/{application['id']}/branding"

    response = api_client.put(
        url,
        json={"branding": {"primaryColor": "#ff0000", "security": {"mandatoryMFA": True}}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["revision"] == 2
    assert body["branding"]["primaryColor"] == "#ff0000"
    assert body["branding"]["security"] == {"sessionTimeout": 30, "disableScreenshots": False, "mandatoryMFA": True}
    assert body["branding"]["appName"] == "Acme Mobile"

    fetched = api_client.get(url).json()
    assert fetched["branding"] == body["branding"]


def test_stale_expected_revision_conflicts(api_client, create_application):
    application = create_application()
    url = f"/api/v1/admin/applications/{application['id']}/branding"

    first = api_client.put(url, json={"branding": {"accentColor": "#000000"}, "expectedRevision": 1})
    assert first.status_code == 200
    assert first.json()["revision"] == 2

    stale = api_client.put(url, json={"branding": {"accentColor": "#ffffff"}, "expectedRevision": 1})
    assert stale.status_code == 409
    assert stale.json()["detail"]["currentRevision"] == 2
    assert api_client.get(url).json()["branding"]["accentColor"] == "#000000"


def test_typed_section_updates_touch_only_their_slice(api_client, create_application):
    application = create_application()

    response = api_client.patch(
        f"/api/v1/admin/applications/{application['id']}/branding/sections",
        json={
            "expectedRevision": 1,
            "updates": [
                {"section": "security", "sessionTimeout": 15},
                {"section": "authFlow", "flow": "signup", "passwordPolicy": "strong"},
                {"section": "features", "flags": {"darkMode": True}},
                {
                    "section": "survey",
                    "enabled": True,
                    "slides": [{"id": "q1", "question": "How did you hear about us?", "options": ["Friend", "Ad"]}],
                },
            ],
        },
    )

    assert response.status_code == 200, response.text
    branding = response.json()["branding"]
    assert branding["security"] == {"sessionTimeout": 15, "disableScreenshots": False, "mandatoryMFA": False}
    assert branding["flows"]["signup"]["passwordPolicy"] == "strong"
    assert branding["flows"]["signup"]["requireEmailVerification"] is True
    assert branding["flows"]["login"]["passwordPolicy"] == "standard"
    assert branding["features"] == {"darkMode": True}
    assert branding["flows"]["survey"]["enabled"] is True
    assert branding["flows"]["survey"]["trigger"] == "after_onboarding"
    assert branding["flows"]["survey"]["slides"][0]["options"] == ["Friend", "Ad"]


def test_unknown_section_is_rejected(api_client, create_application):
    application = create_application()
    response = api_client.patch(
        f"/api/v1/admin/applications/{application['id']}/branding/sections",
        json={"updates": [{"section": "nonsense", "value": 1}]},
    )
    assert response.status_code == 422


def test_application_versions_publish_copies_snapshot(api_client, create_application):
    application = create_application()
    base = f"/api/v1/admin/applications/{application['id']}/versions"

    draft = api_client.post(base, json={"branding": {"primaryColor": "#123456"}, "notes": "spring refresh"})
    assert draft.status_code == 201
    assert draft.json()["version_number"] == 1

    published = api_client.post(f"{base}/{draft.json()['id']}/publish")
    assert published.status_code == 200
    body = published.json()
    assert body["version"]["status"] == "published"
    assert body["application"]["branding"] == {"primaryColor": "#123456"}
    assert body["application"]["branding_revision"] == 2

    edit = api_client.put(f"{base}/{draft.json()['id']}", json={"notes": "too late"})
    assert edit.status_code == 400


def test_component_styles_round_trip(api_client, create_application):
    application = create_application()
    url = f"/api/v1/admin/applications/{application['id']}/component-styles"

    bad = api_client.put(url, json={"componentStyles": {"categories": "buttons"}})
    assert bad.status_code == 400

    saved = api_client.put(url, json={"componentStyles": {"categories": [{"id": "buttons", "styles": {}}]}})
    assert saved.status_code == 200
    styles = saved.json()["componentStyles"]
    assert styles["categories"] == [{"id": "buttons", "styles": {}}]
    assert styles["updatedBy"] == "user_admin"

    fetched = api_client.get(url).json()["componentStyles"]
    assert fetched["categories"] == styles["categories"]
    assert fetched["branding"]["appName"] == "Acme Mobile"


def test_applications_are_scoped_to_the_callers_org(api_client, create_application, auth_context):
    application = create_application()
    auth_context.org_id = "00000000-0000-0000-0000-000000000002"

    response = api_client.get(f"/api/v1/admin/applications/{application['id']}")
    assert response.status_code == 404
    auth_context.org_id = TEST_ORG_ID


def test_non_admin_is_forbidden(api_client):
    app.dependency_overrides[get_current_user] = lambda: AuthContext(
        user_id="user_member", org_id=TEST_ORG_ID, role="org:member"
    )

    response = api_client.get("/api/v1/admin/applications")

    assert response.status_code == 403
    assert response.json() == {"detail": "Admin role required"}


def test_missing_token_is_unauthorized(override_dependencies):
    app.dependency_overrides.pop(get_current_user)
    with TestClient(app) as client:
        response = client.get("/api/v1/admin/applications")
    assert response.status_code == 401


def test_legacy_prefix_serves_the_same_routes(api_client, create_application):
    application = create_application()
    response = api_client.get(f"/api/admin/applications/{application['id']}")
    assert response.status_code == 200
    assert response.json()["slug"] == "acme-mobile"

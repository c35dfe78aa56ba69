from io import BytesIO

from PIL import Image


def _png_bytes(width: int = 4, height: int = 3) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color=(255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


def _create_slide(api_client, title: str, **extra) -> dict:
    response = api_client.post("/api/v1/admin/marketing/slides", json={"title": title, **extra})
    assert response.status_code == 201, response.text
    return response.json()


def test_slide_features_round_trip(api_client):
    slide = _create_slide(
        api_client,
        "Track everything",
        slideData={"gradient": ["#000000", "#ffffff"], "features": ["a", "b"], "ctaText": "Start"},
    )

    fetched = api_client.get(f"/api/v1/admin/marketing/slides/{slide['id']}").json()
    assert fetched["slide_data"]["features"] == ["a", "b"]
    assert fetched["slide_data"]["gradient"] == ["#000000", "#ffffff"]
    assert fetched["slide_data"]["ctaText"] == "Start"


def test_slide_gradient_needs_two_stops(api_client):
    response = api_client.post(
        "/api/v1/admin/marketing/slides",
        json={"title": "Bad", "slideData": {"gradient": ["#000000"]}},
    )
    assert response.status_code == 422


def test_slides_get_appended_ordering_and_can_be_reordered(api_client):
    first = _create_slide(api_client, "First")
    second = _create_slide(api_client, "Second")
    assert second["ordering"] > first["ordering"]

    reordered = api_client.post(
        "/api/v1/admin/marketing/slides/reorder",
        json={"ids": [second["id"], first["id"]]},
    )
    assert reordered.status_code == 200
    assert [slide["id"] for slide in reordered.json()] == [second["id"], first["id"]]

    missing = api_client.post("/api/v1/admin/marketing/slides/reorder", json={"ids": ["nope"]})
    assert missing.status_code == 404


def test_slide_update_and_status_filter(api_client):
    slide = _create_slide(api_client, "Draft slide", subtitle="Sub")

    updated = api_client.put(
        f"/api/v1/admin/marketing/slides/{slide['id']}",
        json={"status": "published", "subtitle": None},
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == "published"
    assert updated.json()["subtitle"] is None
    assert updated.json()["title"] == "Draft slide"

    published = api_client.get("/api/v1/admin/marketing/slides", params={"status": "published"}).json()
    assert [item["id"] for item in published] == [slide["id"]]
    drafts = api_client.get("/api/v1/admin/marketing/slides", params={"status": "draft"}).json()
    assert drafts == []

    assert api_client.delete(f"/api/v1/admin/marketing/slides/{slide['id']}").status_code == 204
    assert api_client.get(f"/api/v1/admin/marketing/slides/{slide['id']}").status_code == 404


def test_public_config_serves_branding_and_categories(api_client, create_application):
    application = create_application()
    api_client.put(
        f"/api/v1/admin/applications/{application['id']}/component-styles",
        json={"componentStyles": {"categories": [{"id": "cards"}]}},
    )

    response = api_client.get("/api/v1/public/applications/acme-mobile/config")

    assert response.status_code == 200
    body = response.json()
    assert body["revision"] == 1
    assert body["componentStyles"]["branding"]["appName"] == "Acme Mobile"
    assert body["componentStyles"]["categories"] == [{"id": "cards"}]
    assert body["componentStyles"]["updatedAt"]


def test_public_config_hides_inactive_and_unknown_apps(api_client, create_application):
    application = create_application()
    api_client.delete(f"/api/v1/admin/applications/{application['id']}")

    assert api_client.get("/api/v1/public/applications/acme-mobile/config").status_code == 404
    assert api_client.get("/api/v1/public/applications/unknown/config").status_code == 404


def test_public_content_and_slides_only_show_published(api_client, create_application):
    application = create_application()
    app_id = application["id"]
    api_client.post(
        "/api/v1/admin/content/pages",
        json={
            "title": "Popup",
            "slug": "popup",
            "type": "promo",
            "status": "published",
            "applicationId": app_id,
            "mobileDisplay": {"showAsPopup": True},
        },
    )
    api_client.post(
        "/api/v1/admin/content/pages",
        json={"title": "Hidden", "slug": "hidden", "type": "promo", "applicationId": app_id},
    )
    _create_slide(api_client, "Live", status="published", applicationId=app_id, slideData={"features": ["x"]})
    _create_slide(api_client, "Not yet", applicationId=app_id)

    pages = api_client.get("/api/v1/public/applications/acme-mobile/content").json()["pages"]
    assert [page["slug"] for page in pages] == ["popup"]
    popups = api_client.get(
        "/api/v1/public/applications/acme-mobile/content", params={"showOnHome": True}
    ).json()["pages"]
    assert popups == []

    slides = api_client.get("/api/v1/public/applications/acme-mobile/marketing-slides").json()
    assert [slide["title"] for slide in slides] == ["Live"]
    assert slides[0]["features"] == ["x"]


def test_logo_upload_updates_branding_and_is_served_through_proxy(api_client, create_application):
    application = create_application()
    png = _png_bytes()

    response = api_client.post(
        f"/api/v1/admin/applications/{application['id']}/upload",
        files={"file": ("logo.png", png, "image/png")},
        data={"type": "logo"},
    )

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["url"] == f"/api/v1/storage/proxy/{body['id']}"
    assert body["mimeType"] == "image/png"
    assert body["size"] == len(png)

    branding = api_client.get(f"/api/v1/admin/applications/{application['id']}/branding").json()
    assert branding["branding"]["logoUrl"] == body["url"]
    assert branding["revision"] == 2

    served = api_client.get(body["url"])
    assert served.status_code == 200
    assert served.content == png
    assert served.headers["content-type"] == "image/png"
    assert "immutable" in served.headers["cache-control"]


def test_upload_rejects_unsupported_and_oversized_files(api_client, create_application, monkeypatch):
    from appconfig.config import settings

    application = create_application()
    url = f"/api/v1/admin/applications/{application['id']}/upload"

    text_file = api_client.post(url, files={"file": ("notes.txt", b"hello", "text/plain")})
    assert text_file.status_code == 400

    monkeypatch.setattr(settings, "UPLOAD_MAX_BYTES", 10)
    too_big = api_client.post(url, files={"file": ("logo.png", _png_bytes(), "image/png")})
    assert too_big.status_code == 413


def test_invalid_image_is_rejected_before_anything_is_stored(
    api_client, create_application, db_session, monkeypatch, tmp_path
):
    from appconfig.config import settings
    from appconfig.db.models import StoredAsset

    monkeypatch.setattr(settings, "MEDIA_STORAGE_LOCAL_DIR", str(tmp_path))
    application = create_application()

    response = api_client.post(
        f"/api/v1/admin/applications/{application['id']}/upload",
        files={"file": ("logo.png", b"not really a png", "image/png")},
        data={"type": "logo"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid image file."
    assert [path for path in tmp_path.rglob("*") if path.is_file()] == []
    assert db_session.query(StoredAsset).count() == 0


def test_slide_ordering_is_appended_per_application(api_client, create_application, db_session):
    from appconfig.db.repositories.marketing_slides import MarketingSlidesRepository

    first_app = create_application()
    second_app = create_application(slug="acme-kids", name="Acme Kids")
    _create_slide(api_client, "A1", applicationId=first_app["id"], status="published")
    _create_slide(api_client, "A2", applicationId=first_app["id"], status="published")
    b1 = _create_slide(api_client, "B1", applicationId=second_app["id"], status="published")
    org_wide = _create_slide(api_client, "Everywhere")

    assert b1["ordering"] == 0
    assert org_wide["ordering"] == 0

    published = MarketingSlidesRepository(db_session).list_published(application_id=first_app["id"])
    assert [(slide.title, slide.ordering) for slide in published] == [("A1", 0), ("A2", 1)]

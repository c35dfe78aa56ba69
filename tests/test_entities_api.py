import json
from datetime import datetime, timedelta, timezone

from appconfig.auth.dependencies import AuthContext, get_current_user
from appconfig.db.models import Entity
from appconfig.main import app

TEST_ORG_ID = "00000000-0000-0000-0000-000000000001"


def _create_entity(api_client, type_name: str, attributes: dict, **extra) -> dict:
    response = api_client.post(f"/api/v1/entities/{type_name}", json={"attributes": attributes, **extra})
    assert response.status_code == 201, response.text
    return response.json()


def test_entity_crud_merges_attributes(api_client):
    task = _create_entity(api_client, "task", {"title": "Write tests", "done": False}, metadata={"source": "web"})
    assert task["type"] == "task"
    assert task["ownerId"] == "user_admin"
    assert task["status"] == "active"
    assert task["metadata"] == {"source": "web"}

    updated = api_client.patch(f"/api/v1/entities/task/{task['id']}", json={"attributes": {"done": True}})
    assert updated.status_code == 200
    assert updated.json()["attributes"] == {"title": "Write tests", "done": True}

    archived = api_client.patch(f"/api/v1/entities/task/{task['id']}", json={"status": "archived"})
    assert archived.json()["status"] == "archived"

    assert api_client.get(f"/api/v1/entities/task/{task['id']}").json()["attributes"]["done"] is True
    assert api_client.get(f"/api/v1/entities/note/{task['id']}").status_code == 404


def test_soft_and_hard_delete(api_client, db_session):
    soft = _create_entity(api_client, "task", {"title": "soft"})
    hard = _create_entity(api_client, "task", {"title": "hard"})

    assert api_client.delete(f"/api/v1/entities/task/{soft['id']}").status_code == 204
    assert api_client.get(f"/api/v1/entities/task/{soft['id']}").status_code == 404
    assert db_session.get(Entity, soft["id"]).status == "deleted"

    assert api_client.delete(f"/api/v1/entities/task/{hard['id']}", params={"hard": True}).status_code == 204
    db_session.expire_all()
    assert db_session.get(Entity, hard["id"]) is None


def test_query_filters_search_and_pagination(api_client):
    _create_entity(api_client, "task", {"title": "Buy milk", "done": False, "priority": 1})
    _create_entity(api_client, "task", {"title": "Ship release", "done": True, "priority": 2})
    _create_entity(api_client, "task", {"title": "Plan sprint", "done": False, "priority": 2})

    done = api_client.get("/api/v1/entities/task", params={"filters": json.dumps({"done": True})}).json()
    assert [item["attributes"]["title"] for item in done["items"]] == ["Ship release"]

    priority = api_client.get("/api/v1/entities/task", params={"filters": json.dumps({"priority": 2})}).json()
    assert priority["total"] == 2

    searched = api_client.get("/api/v1/entities/task", params={"search": "MILK"}).json()
    assert [item["attributes"]["title"] for item in searched["items"]] == ["Buy milk"]

    paged = api_client.get("/api/v1/entities/task", params={"limit": 2, "orderDir": "asc"}).json()
    assert paged["total"] == 3
    assert paged["totalPages"] == 2
    assert [item["attributes"]["title"] for item in paged["items"]] == ["Buy milk", "Ship release"]

    bad = api_client.get("/api/v1/entities/task", params={"filters": "not json"})
    assert bad.status_code == 400
    assert api_client.get("/api/v1/entities/task", params={"filters": "[1]"}).status_code == 400


def test_entities_are_private_to_their_owner(api_client):
    task = _create_entity(api_client, "task", {"title": "mine"})
    app.dependency_overrides[get_current_user] = lambda: AuthContext(
        user_id="user_other", org_id=TEST_ORG_ID, role="org:member"
    )

    assert api_client.get(f"/api/v1/entities/task/{task['id']}").status_code == 404
    assert api_client.get("/api/v1/entities/task").json()["total"] == 0


def test_entity_must_reference_an_application_in_org(api_client):
    response = api_client.post(
        "/api/v1/entities/task",
        json={"attributes": {}, "applicationId": "00000000-0000-0000-0000-00000000ffff"},
    )
    assert response.status_code == 404


def test_relations_upsert_list_and_delete(api_client):
    project = _create_entity(api_client, "project", {"name": "Launch"})
    task = _create_entity(api_client, "task", {"title": "Design"})
    base = f"/api/v1/entities/project/{project['id']}/relations"

    first = api_client.put(base, json={"targetId": task["id"], "relationType": "contains", "metadata": {"order": 1}})
    assert first.status_code == 200
    again = api_client.put(base, json={"targetId": task["id"], "relationType": "contains", "metadata": {"pinned": True}})
    assert again.json()["metadata"] == {"order": 1, "pinned": True}

    related = api_client.get(f"{base}/contains", params={"targetType": "task"}).json()["items"]
    assert [item["id"] for item in related] == [task["id"]]
    assert related[0]["relation"]["type"] == "contains"
    assert api_client.get(f"{base}/contains", params={"targetType": "note"}).json()["items"] == []

    assert api_client.delete(f"{base}/contains/{task['id']}").status_code == 204
    assert api_client.delete(f"{base}/contains/{task['id']}").status_code == 404
    assert api_client.get(f"{base}/contains").json()["items"] == []


def test_emotion_check_in_and_summary(api_client):
    for emotion in ("HAPPY", "HAPPY", "TIRED"):
        response = api_client.post("/api/v1/emotions/check-in", json={"emotion": emotion, "intensity": 4})
        assert response.status_code == 201

    assert api_client.post("/api/v1/emotions/check-in", json={"emotion": "BORED"}).status_code == 422
    assert api_client.post("/api/v1/emotions/check-in", json={"emotion": "SAD", "intensity": 9}).status_code == 422

    history = api_client.get("/api/v1/emotions/history").json()
    assert history["total"] == 3
    assert history["days"] == 30
    assert history["checkIns"][0]["attributes"]["intensity"] == 4

    summary = api_client.get("/api/v1/emotions/summary", params={"days": 7}).json()
    assert summary["total"] == 3
    assert summary["counts"]["HAPPY"] == 2
    assert summary["counts"]["TIRED"] == 1
    assert summary["counts"]["SCARED"] == 0
    assert summary["dominant"] == "HAPPY"


def test_emotion_summary_without_check_ins(api_client):
    summary = api_client.get("/api/v1/emotions/summary").json()
    assert summary["total"] == 0
    assert summary["dominant"] is None


def test_location_ping_history_and_latest(api_client):
    assert api_client.get("/api/v1/locations/latest").status_code == 404

    now = datetime.now(timezone.utc)
    api_client.post(
        "/api/v1/locations/ping",
        json={"latitude": 52.37, "longitude": 4.89, "address": "Amsterdam", "recordedAt": now.isoformat()},
    )
    backfilled = api_client.post(
        "/api/v1/locations/ping",
        json={
            "latitude": 48.85,
            "longitude": 2.35,
            "address": "Paris",
            "recordedAt": (now - timedelta(days=20)).isoformat(),
        },
    )
    assert backfilled.status_code == 201

    # The ping posted last was recorded earlier, so it is neither latest nor inside a week.
    latest = api_client.get("/api/v1/locations/latest").json()
    assert latest["attributes"]["address"] == "Amsterdam"

    week = api_client.get("/api/v1/locations/history").json()
    assert [item["attributes"]["address"] for item in week["locations"]] == ["Amsterdam"]
    month = api_client.get("/api/v1/locations/history", params={"days": 30}).json()
    assert [item["attributes"]["address"] for item in month["locations"]] == ["Amsterdam", "Paris"]


def test_location_recorded_at_is_normalised_to_utc(api_client):
    response = api_client.post(
        "/api/v1/locations/ping",
        json={"latitude": 48.85, "longitude": 2.35, "recordedAt": "2026-10-01T08:00:00+02:00"},
    )
    assert response.status_code == 201
    assert response.json()["attributes"]["recordedAt"] == "2026-10-01T06:00:00.000000+00:00"

    out_of_range = api_client.post("/api/v1/locations/ping", json={"latitude": 91, "longitude": 0})
    assert out_of_range.status_code == 422


def test_gallery_albums_photos_and_stats(api_client):
    holiday = api_client.post("/api/v1/gallery/albums", json={"name": "Holiday"}).json()
    family = api_client.post("/api/v1/gallery/albums", json={"name": "Family"}).json()

    photo = api_client.post(
        "/api/v1/gallery/photos",
        json={"url": "https://cdn.example.test/p1.jpg", "albumId": holiday["id"]},
    ).json()
    loose = api_client.post("/api/v1/gallery/photos", json={"url": "https://cdn.example.test/p2.jpg"}).json()
    assert photo["albumId"] == holiday["id"]
    assert loose["albumId"] is None

    favorite = api_client.patch(f"/api/v1/gallery/photos/{photo['id']}/favorite").json()
    assert favorite == {"id": photo["id"], "isFavorite": True}
    favorites = api_client.get("/api/v1/gallery/photos", params={"favorites": True}).json()
    assert [item["id"] for item in favorites["photos"]] == [photo["id"]]

    moved = api_client.post(f"/api/v1/gallery/photos/{photo['id']}/move", json={"albumId": family["id"]}).json()
    assert moved["albumId"] == family["id"]
    assert api_client.get("/api/v1/gallery/photos", params={"albumId": holiday["id"]}).json()["total"] == 0
    assert api_client.get("/api/v1/gallery/photos", params={"albumId": family["id"]}).json()["total"] == 1

    covered = api_client.post(f"/api/v1/gallery/albums/{family['id']}/cover/{photo['id']}").json()
    assert covered["attributes"]["coverPhotoId"] == photo["id"]
    assert covered["photoCount"] == 1

    stats = api_client.get("/api/v1/gallery/stats").json()
    assert stats == {"photos": 2, "favorites": 1, "albums": 2}


def test_deleting_album_keeps_its_photos(api_client):
    album = api_client.post("/api/v1/gallery/albums", json={"name": "Temp"}).json()
    photo = api_client.post(
        "/api/v1/gallery/photos",
        json={"url": "https://cdn.example.test/p.jpg", "albumId": album["id"]},
    ).json()

    assert api_client.delete(f"/api/v1/gallery/albums/{album['id']}").status_code == 204

    photos = api_client.get("/api/v1/gallery/photos").json()["photos"]
    assert [(item["id"], item["albumId"]) for item in photos] == [(photo["id"], None)]
    assert api_client.get("/api/v1/gallery/albums").json()["total"] == 0


def test_album_cover_must_be_an_owned_photo(api_client):
    album = api_client.post("/api/v1/gallery/albums", json={"name": "Covers"}).json()
    response = api_client.patch(
        f"/api/v1/gallery/albums/{album['id']}",
        json={"coverPhotoId": "00000000-0000-0000-0000-00000000beef"},
    )
    assert response.status_code == 404

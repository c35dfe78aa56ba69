from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from appconfig.auth.dependencies import AuthContext, get_current_user
from appconfig.db.deps import get_session
from appconfig.db.models import Entity
from appconfig.db.repositories.entities import MAX_PAGE_SIZE, EntitiesRepository, EntityRelationsRepository
from appconfig.routers.entities import entity_payload, get_owned_entity_or_404
from appconfig.schemas.entities import (
    AlbumCreateRequest,
    AlbumUpdateRequest,
    PhotoCreateRequest,
    PhotoMoveRequest,
)

router = APIRouter(prefix="/gallery", tags=["gallery"])
logger = logging.getLogger(__name__)

ALBUM_TYPE = "album"
PHOTO_TYPE = "photo"
ALBUM_PHOTO = "album_photo"


def _album_payload(session: Session, album: Entity) -> dict:
    photos = EntityRelationsRepository(session).related(
        source_id=album.id, relation_type=ALBUM_PHOTO, target_type=PHOTO_TYPE
    )
    payload = entity_payload(album)
    payload["photoCount"] = len(photos)
    return payload


def _album_id_for(session: Session, photo: Entity) -> Optional[str]:
    sources = EntityRelationsRepository(session).sources_for(target_id=photo.id, relation_type=ALBUM_PHOTO)
    return sources[0][0].id if sources else None


def _photo_payload(session: Session, photo: Entity) -> dict:
    payload = entity_payload(photo)
    payload["albumId"] = _album_id_for(session, photo)
    return payload


def _place_in_album(session: Session, photo: Entity, album: Optional[Entity]) -> None:
    """A photo belongs to at most one album; moving drops the previous edge."""
    relations = EntityRelationsRepository(session)
    relations.delete_for_target(target_id=photo.id, relation_type=ALBUM_PHOTO)
    if album is not None:
        relations.upsert(source_id=album.id, target_id=photo.id, relation_type=ALBUM_PHOTO)


@router.get("/albums")
def list_albums(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    albums, total = EntitiesRepository(session).query(
        org_id=auth.org_id,
        type_name=ALBUM_TYPE,
        owner_id=auth.user_id,
        limit=MAX_PAGE_SIZE,
    )
    return {"albums": [_album_payload(session, album) for album in albums], "total": total}


@router.post("/albums", status_code=status.HTTP_201_CREATED)
def create_album(
    payload: AlbumCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    album = EntitiesRepository(session).create(
        org_id=auth.org_id,
        type_name=ALBUM_TYPE,
        owner_id=auth.user_id,
        data={"name": payload.name, "description": payload.description, "coverPhotoId": None},
    )
    return _album_payload(session, album)


@router.patch("/albums/{album_id}")
def update_album(
    album_id: str,
    payload: AlbumUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    album = get_owned_entity_or_404(session, auth, ALBUM_TYPE, album_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("coverPhotoId"):
        get_owned_entity_or_404(session, auth, PHOTO_TYPE, changes["coverPhotoId"])
    album = EntitiesRepository(session).update(album, data=changes)
    return _album_payload(session, album)


@router.post("/albums/{album_id}/cover/{photo_id}")
def set_album_cover(
    album_id: str,
    photo_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    album = get_owned_entity_or_404(session, auth, ALBUM_TYPE, album_id)
    photo = get_owned_entity_or_404(session, auth, PHOTO_TYPE, photo_id)
    album = EntitiesRepository(session).update(album, data={"coverPhotoId": photo.id})
    return _album_payload(session, album)


@router.delete("/albums/{album_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_album(
    album_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    album = get_owned_entity_or_404(session, auth, ALBUM_TYPE, album_id)
    released = EntityRelationsRepository(session).delete_for_source(source_id=album.id, relation_type=ALBUM_PHOTO)
    EntitiesRepository(session).delete(album)
    logger.info("Album deleted", extra={"album_id": album_id, "released_photos": released})


@router.get("/photos")
def list_photos(
    albumId: Optional[str] = None,
    favorites: bool = False,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if albumId:
        album = get_owned_entity_or_404(session, auth, ALBUM_TYPE, albumId)
        rows = EntityRelationsRepository(session).related(
            source_id=album.id, relation_type=ALBUM_PHOTO, target_type=PHOTO_TYPE
        )
        photos = [photo for photo, _ in rows if not favorites or (photo.data or {}).get("isFavorite")]
        start = (page - 1) * limit
        return {
            "photos": [_photo_payload(session, photo) for photo in photos[start : start + limit]],
            "total": len(photos),
        }

    photos, total = EntitiesRepository(session).query(
        org_id=auth.org_id,
        type_name=PHOTO_TYPE,
        owner_id=auth.user_id,
        filters={"isFavorite": True} if favorites else None,
        page=page,
        limit=limit,
    )
    return {"photos": [_photo_payload(session, photo) for photo in photos], "total": total}


@router.post("/photos", status_code=status.HTTP_201_CREATED)
def create_photo(
    payload: PhotoCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    album = get_owned_entity_or_404(session, auth, ALBUM_TYPE, payload.albumId) if payload.albumId else None
    photo = EntitiesRepository(session).create(
        org_id=auth.org_id,
        type_name=PHOTO_TYPE,
        owner_id=auth.user_id,
        data={
            "url": payload.url,
            "caption": payload.caption,
            "takenAt": payload.takenAt.isoformat() if payload.takenAt else None,
            "width": payload.width,
            "height": payload.height,
            "isFavorite": False,
        },
    )
    if album is not None:
        _place_in_album(session, photo, album)
    return _photo_payload(session, photo)


@router.patch("/photos/{photo_id}/favorite")
def toggle_favorite(
    photo_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    photo = get_owned_entity_or_404(session, auth, PHOTO_TYPE, photo_id)
    is_favorite = not bool((photo.data or {}).get("isFavorite"))
    EntitiesRepository(session).update(photo, data={"isFavorite": is_favorite})
    return {"id": photo_id, "isFavorite": is_favorite}


@router.post("/photos/{photo_id}/move")
def move_photo(
    photo_id: str,
    payload: PhotoMoveRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    photo = get_owned_entity_or_404(session, auth, PHOTO_TYPE, photo_id)
    album = get_owned_entity_or_404(session, auth, ALBUM_TYPE, payload.albumId) if payload.albumId else None
    _place_in_album(session, photo, album)
    return _photo_payload(session, photo)


@router.delete("/photos/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_photo(
    photo_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    photo = get_owned_entity_or_404(session, auth, PHOTO_TYPE, photo_id)
    EntityRelationsRepository(session).delete_for_target(target_id=photo.id, relation_type=ALBUM_PHOTO)
    EntitiesRepository(session).delete(photo)


@router.get("/stats")
def gallery_stats(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    repo = EntitiesRepository(session)
    _, photos = repo.query(org_id=auth.org_id, type_name=PHOTO_TYPE, owner_id=auth.user_id, limit=1)
    _, favorites = repo.query(
        org_id=auth.org_id, type_name=PHOTO_TYPE, owner_id=auth.user_id, filters={"isFavorite": True}, limit=1
    )
    _, albums = repo.query(org_id=auth.org_id, type_name=ALBUM_TYPE, owner_id=auth.user_id, limit=1)
    return {"photos": photos, "favorites": favorites, "albums": albums}

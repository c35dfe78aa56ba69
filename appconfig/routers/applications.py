from __future__ import annotations

import logging
import mimetypes
from copy import deepcopy
from typing import Literal

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from appconfig.auth.dependencies import AuthContext, require_admin
from appconfig.config import settings
from appconfig.db.deps import get_session
from appconfig.db.enums import ApplicationVersionStatusEnum, AssetKindEnum
from appconfig.db.models import Application, utcnow
from appconfig.db.repositories.applications import (
    ApplicationsRepository,
    ApplicationVersionsRepository,
    DuplicateSlugError,
)
from appconfig.schemas.applications import (
    ApplicationCreateRequest,
    ApplicationUpdateRequest,
    ApplicationVersionCreateRequest,
    ApplicationVersionUpdateRequest,
    BrandingSectionsRequest,
    BrandingUpdateRequest,
    ComponentStylesRequest,
    LoginConfigRequest,
    PreviewRequest,
    section_update_fields,
)
from appconfig.services.assets import (
    BRANDING_ALLOWED_MIME_TYPES,
    asset_proxy_url,
    create_branding_upload_asset,
)
from appconfig.services.branding import (
    BrandingRevisionConflictError,
    apply_section_updates,
    check_revision,
    deep_merge,
    default_branding,
)
from appconfig.services.login_config import (
    DEFAULT_LOGIN_CONFIG,
    apply_login_config,
    build_login_config,
    merge_with_defaults,
    validate_login_config,
)
from appconfig.services.preview import build_preview

router = APIRouter(prefix="/admin/applications", tags=["applications"])
logger = logging.getLogger(__name__)


def _get_application_or_404(session: Session, *, org_id: str, application_id: str) -> Application:
    application = ApplicationsRepository(session).get(org_id=org_id, application_id=application_id)
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return application


def _check_revision_or_409(application: Application, expected: int | None) -> None:
    try:
        check_revision(expected=expected, current=application.branding_revision)
    except BrandingRevisionConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "currentRevision": exc.current},
        ) from exc


def _branding_payload(application: Application) -> dict:
    return {
        "branding": application.branding,
        "revision": application.branding_revision,
        "updatedAt": application.updated_at,
    }


def _validated_login_config_or_400(config: dict) -> dict:
    errors = validate_login_config(config)
    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid login configuration", "errors": errors},
        )
    return config


def _resolve_upload_content_type_or_400(file: UploadFile) -> str:
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if not content_type and file.filename:
        guessed = mimetypes.guess_type(file.filename)[0]
        if guessed:
            content_type = guessed.lower()
    if content_type not in BRANDING_ALLOWED_MIME_TYPES:
        allowed = ", ".join(sorted(BRANDING_ALLOWED_MIME_TYPES))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type ({content_type or 'unknown'}). Allowed image types: {allowed}.",
        )
    return content_type


@router.get("")
def list_applications(
    includeInactive: bool = False,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
) -> list:
    repo = ApplicationsRepository(session)
    return jsonable_encoder(repo.list(org_id=auth.org_id, include_inactive=includeInactive))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_application(
    payload: ApplicationCreateRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    repo = ApplicationsRepository(session)
    branding = deep_merge(default_branding(app_name=payload.name), payload.branding)
    try:
        application = repo.create(
            org_id=auth.org_id,
            name=payload.name,
            slug=payload.slug,
            description=payload.description,
            branding=branding,
            created_by=auth.user_id,
        )
    except DuplicateSlugError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slug already exists") from exc
    logger.info("Application created", extra={"application_id": application.id, "slug": application.slug})
    return jsonable_encoder(application)


@router.get("/{application_id}")
def get_application(
    application_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    return jsonable_encoder(_get_application_or_404(session, org_id=auth.org_id, application_id=application_id))


@router.put("/{application_id}")
def update_application(
    application_id: str,
    payload: ApplicationUpdateRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    if payload.slug is not None and payload.slug != application.slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug is immutable")

    fields: dict[str, object] = {}
    if payload.name is not None:
        fields["name"] = payload.name
    if "description" in payload.model_fields_set:
        fields["description"] = payload.description
    if payload.isActive is not None:
        fields["is_active"] = payload.isActive
    updated = ApplicationsRepository(session).update(org_id=auth.org_id, application_id=application_id, **fields)
    return jsonable_encoder(updated)


@router.delete("/{application_id}")
def deactivate_application(
    application_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    ApplicationsRepository(session).update(org_id=auth.org_id, application_id=application_id, is_active=False)
    logger.info("Application deactivated", extra={"application_id": application_id})
    return {"id": application_id, "isActive": False}


@router.get("/{application_id}/branding")
def get_branding(
    application_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    return jsonable_encoder(_branding_payload(application))


@router.put("/{application_id}/branding")
def update_branding(
    application_id: str,
    payload: BrandingUpdateRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    _check_revision_or_409(application, payload.expectedRevision)
    application.branding = deep_merge(application.branding or {}, payload.branding)
    application.branding_revision += 1
    ApplicationsRepository(session).save(application)
    return jsonable_encoder(_branding_payload(application))


@router.patch("/{application_id}/branding/sections")
def update_branding_sections(
    application_id: str,
    payload: BrandingSectionsRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    _check_revision_or_409(application, payload.expectedRevision)
    updates = [section_update_fields(update) for update in payload.updates]
    application.branding = apply_section_updates(application.branding or {}, updates)
    application.branding_revision += 1
    ApplicationsRepository(session).save(application)
    logger.info(
        "Branding sections updated",
        extra={"application_id": application_id, "sections": [u["section"] for u in updates]},
    )
    return jsonable_encoder(_branding_payload(application))


@router.get("/{application_id}/login-config")
def get_login_config(
    application_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    return {"config": build_login_config(application)}


@router.put("/{application_id}/login-config")
def update_login_config(
    application_id: str,
    payload: LoginConfigRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    config = _validated_login_config_or_400(payload.config)
    apply_login_config(application, config)
    ApplicationsRepository(session).save(application)
    return {"config": build_login_config(application)}


@router.post("/{application_id}/login-config/clone/{target_id}")
def clone_login_config(
    application_id: str,
    target_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    if application_id == target_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Source and target applications must differ",
        )
    source = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    target = _get_application_or_404(session, org_id=auth.org_id, application_id=target_id)
    config = build_login_config(source)
    # The target keeps its own name.
    config["branding"].pop("appName", None)
    apply_login_config(target, config)
    ApplicationsRepository(session).save(target)
    logger.info("Login config cloned", extra={"source_id": application_id, "target_id": target_id})
    return {"config": build_login_config(target)}


@router.post("/{application_id}/login-config/reset")
def reset_login_config(
    application_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    defaults = deepcopy(DEFAULT_LOGIN_CONFIG)
    defaults["branding"].pop("appName", None)
    apply_login_config(application, defaults)
    ApplicationsRepository(session).save(application)
    return {"config": build_login_config(application)}


@router.post("/{application_id}/preview/{screen}")
def preview_screen(
    application_id: str,
    screen: Literal["login", "signup"],
    payload: PreviewRequest | None = None,
    device: Literal["desktop", "tablet", "mobile"] = "desktop",
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    config = build_login_config(application)
    overrides = payload.config if payload else {}
    if overrides:
        config = merge_with_defaults({**config, **overrides})
    return build_preview(config, screen=screen, device=device, branding=application.branding)


@router.get("/{application_id}/versions")
def list_application_versions(
    application_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
) -> list:
    _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    return jsonable_encoder(ApplicationVersionsRepository(session).list(application_id=application_id))


@router.post("/{application_id}/versions", status_code=status.HTTP_201_CREATED)
def create_application_version(
    application_id: str,
    payload: ApplicationVersionCreateRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    version = ApplicationVersionsRepository(session).create_draft(
        application_id=application_id,
        branding=payload.branding if payload.branding is not None else deepcopy(application.branding),
        settings=payload.settings if payload.settings is not None else deepcopy(application.settings),
        notes=payload.notes,
        created_by=auth.user_id,
    )
    return jsonable_encoder(version)


@router.put("/{application_id}/versions/{version_id}")
def update_application_version(
    application_id: str,
    version_id: str,
    payload: ApplicationVersionUpdateRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    repo = ApplicationVersionsRepository(session)
    version = repo.get(application_id=application_id, version_id=version_id)
    if not version:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Version not found")
    if version.status != ApplicationVersionStatusEnum.draft:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only draft versions can be edited")
    fields = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
    return jsonable_encoder(repo.update(version, **fields))


@router.post("/{application_id}/versions/{version_id}/publish")
def publish_application_version(
    application_id: str,
    version_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    repo = ApplicationVersionsRepository(session)
    version = repo.get(application_id=application_id, version_id=version_id)
    if not version:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Version not found")
    if version.status == ApplicationVersionStatusEnum.archived:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Archived versions cannot be published")
    published = repo.publish(application=application, version=version)
    logger.info(
        "Application version published",
        extra={"application_id": application_id, "version_number": published.version_number},
    )
    return {"version": jsonable_encoder(published), "application": jsonable_encoder(application)}


@router.get("/{application_id}/component-styles")
def get_component_styles(
    application_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    return {"componentStyles": {**(application.component_styles or {}), "branding": application.branding}}


@router.put("/{application_id}/component-styles")
def update_component_styles(
    application_id: str,
    payload: ComponentStylesRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    categories = payload.componentStyles.get("categories")
    if not isinstance(categories, list):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="componentStyles.categories must be a list",
        )
    styles = {key: value for key, value in payload.componentStyles.items() if key != "branding"}
    styles["updatedAt"] = utcnow().isoformat()
    styles["updatedBy"] = auth.user_id
    application.component_styles = styles
    ApplicationsRepository(session).save(application)
    return {"componentStyles": application.component_styles}


@router.post("/{application_id}/upload", status_code=status.HTTP_201_CREATED)
async def upload_branding_asset(
    application_id: str,
    file: UploadFile = File(...),
    type: AssetKindEnum = Form(AssetKindEnum.branding),
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
):
    application = _get_application_or_404(session, org_id=auth.org_id, application_id=application_id)
    content = await file.read()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File {file.filename or 'upload'} is empty.",
        )
    if len(content) > settings.UPLOAD_MAX_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File {file.filename or 'upload'} exceeds {settings.UPLOAD_MAX_BYTES} bytes.",
        )
    content_type = _resolve_upload_content_type_or_400(file)

    try:
        asset = create_branding_upload_asset(
            session=session,
            org_id=auth.org_id,
            application_id=application_id,
            content_bytes=content,
            filename=file.filename,
            content_type=content_type,
            kind=type,
            user_id=auth.user_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    url = asset_proxy_url(asset.id)
    if type in (AssetKindEnum.logo, AssetKindEnum.icon):
        branding = deepcopy(application.branding or {})
        branding["logoUrl" if type == AssetKindEnum.logo else "iconUrl"] = url
        application.branding = branding
        application.branding_revision += 1
        ApplicationsRepository(session).save(application)

    return {
        "id": asset.id,
        "url": url,
        "fileName": asset.filename,
        "mimeType": asset.content_type,
        "size": asset.size_bytes,
    }

"""
DisasterHub Backend — Disaster Routes
=======================================

What:  /api/disasters — report, browse, transition, edit and delete
       disaster records.
How:   Thin handlers over DisasterService. Lifecycle operations that emit
       an event schedule the notification fan-out as a background task, so
       the response never waits for (or fails because of) notifications.

Route Inventory:
    GET    /disasters               list, filtered + paginated
    GET    /disasters/nearby        bounding-box search
    GET    /disasters/{id}          single record
    POST   /disasters               create (JSON, or multipart with images)
    PUT    /disasters/{id}/status   status transition
    PUT    /disasters/{id}          edit details
    DELETE /disasters/{id}          admin only

`/nearby` is declared before `/{disaster_id}` so it is not captured as an id.
"""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import FormData, UploadFile

from disasterhub.database import get_db_session
from disasterhub.dependencies import get_current_user
from disasterhub.exceptions import ValidationError
from disasterhub.models.enums import DisasterStatus, DisasterType, Severity
from disasterhub.models.user import User
from disasterhub.schemas.common import ErrorResponse, MessageResponse, field_errors
from disasterhub.schemas.disaster import (
    DisasterCreate,
    DisasterEnvelope,
    DisasterListResponse,
    DisasterResponse,
    DisasterStatusUpdate,
    DisasterUpdate,
    NearbyResponse,
)
from disasterhub.services.disaster_service import (
    DEFAULT_NEARBY_DISTANCE,
    DEFAULT_PAGE_SIZE,
    MAX_NEARBY_DISTANCE,
    MAX_PAGE_SIZE,
    MIN_NEARBY_DISTANCE,
    disaster_service,
)
from disasterhub.services.file_service import Upload
from disasterhub.services.notification_service import notification_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/disasters", tags=["Disasters"])

_ERRORS = {
    401: {"description": "Missing, invalid or expired token", "model": ErrorResponse},
    404: {"description": "Disaster not found or not visible to the caller", "model": ErrorResponse},
}

# Form fields that carry JSON in multipart submissions
_JSON_FORM_FIELDS = {"location", "emergencyContacts", "emergency_contacts"}

_CREATE_REQUEST_BODY = {
    "requestBody": {
        "required": True,
        "content": {
            "application/json": {
                "schema": {"type": "object", "description": "Report fields, with a nested location object"},
            },
            "multipart/form-data": {
                "schema": {
                    "type": "object",
                    "required": ["title", "description", "type", "severity"],
                    "properties": {
                        "title": {"type": "string"},
                        "description": {"type": "string"},
                        "type": {"type": "string", "enum": [t.value for t in DisasterType]},
                        "severity": {"type": "string", "enum": [s.value for s in Severity]},
                        "location": {"type": "string", "description": "JSON-encoded location object"},
                        "location.address": {"type": "string"},
                        "location.coordinates.lat": {"type": "number"},
                        "location.coordinates.lng": {"type": "number"},
                        "images": {"type": "array", "items": {"type": "string", "format": "binary"}},
                    },
                },
            },
        },
    },
}


def _to_response(disaster) -> DisasterEnvelope:
    return DisasterEnvelope(disaster=DisasterResponse.from_model(disaster))


def _form_payload(form: FormData) -> Dict[str, Any]:
    """
    Rebuild the nested create payload from multipart fields.

    `location` may arrive as one JSON field or as dotted fields
    (`location.address`, `location.coordinates.lat`, ...).
    """
    payload: Dict[str, Any] = {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile) or key == "images":
            continue
        if key in _JSON_FORM_FIELDS:
            try:
                payload[key] = json.loads(value)
            except ValueError:
                raise ValidationError(message=f"'{key}' must be valid JSON", field=key)
            continue

        target = payload
        *parents, leaf = key.split(".")
        for part in parents:
            node = target.setdefault(part, {})
            if not isinstance(node, dict):
                raise ValidationError(message=f"Conflicting form fields for '{key}'", field=key)
            target = node
        target[leaf] = value
    return payload


async def _read_create_request(request: Request) -> Tuple[DisasterCreate, List[Upload]]:
    """Parse either body flavour into the validated payload plus raw images."""
    content_type = request.headers.get("content-type", "")
    uploads: List[Upload] = []

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        payload = _form_payload(form)
        for item in form.getlist("images"):
            if isinstance(item, UploadFile):
                uploads.append((item.filename or "image", await item.read()))
                await item.close()
    else:
        try:
            payload = await request.json()
        except ValueError:
            raise ValidationError(message="Request body must be valid JSON", field="body")
        if not isinstance(payload, dict):
            raise ValidationError(message="Request body must be a JSON object", field="body")

    try:
        data = DisasterCreate.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(errors=field_errors(e.errors()))
    return data, uploads


# ══════════════════════════════════════════════════════════════════════════
# Read
# ══════════════════════════════════════════════════════════════════════════


@router.get("", response_model=DisasterListResponse, responses=_ERRORS, summary="List visible disasters")
async def list_disasters(
    status: Optional[DisasterStatus] = Query(default=None),
    disaster_type: Optional[DisasterType] = Query(default=None, alias="type"),
    severity: Optional[Severity] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DisasterListResponse:
    """
    Newest first. Users see their own reports, volunteers see the pending
    pool plus what they accepted, admins see everything.
    """
    disasters, total, pages = await disaster_service.list_disasters(
        db,
        current_user,
        status=status.value if status else None,
        disaster_type=disaster_type.value if disaster_type else None,
        severity=severity.value if severity else None,
        page=page,
        limit=limit,
    )
    return DisasterListResponse(
        count=len(disasters),
        total=total,
        page=page,
        pages=pages,
        disasters=[DisasterResponse.from_model(d) for d in disasters],
    )


@router.get("/nearby", response_model=NearbyResponse, responses=_ERRORS, summary="Disasters near a point")
async def nearby_disasters(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    distance: int = Query(
        default=DEFAULT_NEARBY_DISTANCE,
        ge=MIN_NEARBY_DISTANCE,
        le=MAX_NEARBY_DISTANCE,
        description="Half-width of the search box, in meters",
    ),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NearbyResponse:
    disasters = await disaster_service.nearby(db, current_user, lat, lng, distance)
    return NearbyResponse(
        count=len(disasters),
        disasters=[DisasterResponse.from_model(d) for d in disasters],
    )


@router.get("/{disaster_id}", response_model=DisasterEnvelope, responses=_ERRORS, summary="Single disaster")
async def get_disaster(
    disaster_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DisasterEnvelope:
    disaster = await disaster_service.get(db, current_user, disaster_id)
    return _to_response(disaster)


# ══════════════════════════════════════════════════════════════════════════
# Write
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "",
    status_code=201,
    response_model=DisasterEnvelope,
    responses={
        400: {"description": "Invalid fields or images", "model": ErrorResponse},
        401: _ERRORS[401],
        403: {"description": "Volunteers cannot file reports", "model": ErrorResponse},
    },
    openapi_extra=_CREATE_REQUEST_BODY,
    summary="Report a disaster",
    description=(
        "Accepts a JSON body, or multipart/form-data with up to 5 images "
        "(PNG, JPEG, GIF or WebP, max 5MB each). Active volunteers and admins "
        "are notified after the response is sent."
    ),
)
async def create_disaster(
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DisasterEnvelope:
    data, uploads = await _read_create_request(request)
    logger.info("Create disaster request from %s with %d image(s)", current_user.id, len(uploads))

    disaster, event = await disaster_service.create(db, current_user, data, uploads)
    background_tasks.add_task(notification_service.dispatch, event)
    return _to_response(disaster)


@router.put(
    "/{disaster_id}/status",
    response_model=DisasterEnvelope,
    responses={
        **_ERRORS,
        400: {"description": "Invalid status, or transition not allowed", "model": ErrorResponse},
        403: {"description": "Caller may not change this disaster's status", "model": ErrorResponse},
    },
    summary="Change a disaster's status",
)
async def update_status(
    disaster_id: uuid.UUID,
    data: DisasterStatusUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DisasterEnvelope:
    disaster, event = await disaster_service.update_status(db, current_user, disaster_id, data)
    background_tasks.add_task(notification_service.dispatch, event)
    return _to_response(disaster)


@router.put(
    "/{disaster_id}",
    response_model=DisasterEnvelope,
    responses={
        **_ERRORS,
        403: {"description": "Only the reporter or an admin may edit", "model": ErrorResponse},
    },
    summary="Edit a disaster's details",
)
async def update_disaster(
    disaster_id: uuid.UUID,
    data: DisasterUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DisasterEnvelope:
    disaster = await disaster_service.update_details(db, current_user, disaster_id, data)
    return _to_response(disaster)


@router.delete(
    "/{disaster_id}",
    response_model=MessageResponse,
    responses={**_ERRORS, 403: {"description": "Admin only", "model": ErrorResponse}},
    summary="Delete a disaster",
)
async def delete_disaster(
    disaster_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await disaster_service.delete(db, current_user, disaster_id)
    return MessageResponse(message="Disaster deleted successfully")

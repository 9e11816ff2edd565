"""
DisasterHub Backend — Disaster Service (Record Lifecycle)
===========================================================

What:  Create, read, list, transition, edit and delete disaster reports.
How:   Every operation takes the request's AsyncSession and the resolved
       caller. Permissions come from the policy table in
       `disasterhub.services.policy`; listings compose its visibility
       clause with the caller's filters.
Who:   Called by the /api/disasters route handlers.

Operation Flow (create / update_status):
    ┌──────────┐   ┌──────────┐   ┌───────────┐   ┌──────────┐   ┌──────────────┐
    │ Validate │──▶│  Load &  │──▶│  Write &  │──▶│  Reload  │──▶│ DisasterEvent│
    │ (schema) │   │ authorize│   │  COMMIT   │   │ (people) │   │ → fan-out    │
    └──────────┘   └──────────┘   └───────────┘   └──────────┘   └──────────────┘

    The commit happens here, before the event is returned, so the
    background fan-out always sees the committed record.

Status writes are compare-and-swap:
    UPDATE disasters SET status = :new ... WHERE id = :id AND status = :read
    Zero rows updated means another request changed the status first; the
    caller gets ConflictError and the record keeps the winner's values.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from disasterhub.exceptions import ConflictError, DatabaseError, DisasterHubError, NotFoundError
from disasterhub.models.disaster import Disaster
from disasterhub.models.enums import DisasterStatus, Role
from disasterhub.models.user import User
from disasterhub.schemas.disaster import DisasterCreate, DisasterStatusUpdate, DisasterUpdate
from disasterhub.services import policy
from disasterhub.services.file_service import Upload, file_service
from disasterhub.services.notification_service import DisasterEvent, EventType
from disasterhub.services.policy import Operation

logger = logging.getLogger(__name__)

# 1 degree of latitude ≈ 111 km
KM_PER_DEGREE = 111.0

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50
DEFAULT_NEARBY_DISTANCE = 10_000
MIN_NEARBY_DISTANCE = 1_000
MAX_NEARBY_DISTANCE = 50_000

# Explicit nulls are ignored for these; the optional extras can be cleared
REQUIRED_DETAIL_FIELDS = {"title", "description", "severity"}


def bounding_box(lat: float, lng: float, distance_m: int) -> Tuple[float, float, float, float]:
    """
    Square of ±distance/1000/111 degrees around (lat, lng).

    A flat-earth approximation: longitude degrees shrink towards the poles,
    so the box is only accurate for small distances at low latitudes.

    Returns:
        (min_lat, max_lat, min_lng, max_lng)
    """
    deg = distance_m / 1000 / KM_PER_DEGREE
    return lat - deg, lat + deg, lng - deg, lng + deg


def _event(kind: EventType, disaster: Disaster, actor: User) -> DisasterEvent:
    return DisasterEvent(
        type=kind,
        disaster_id=disaster.id,
        title=disaster.title,
        disaster_type=disaster.type,
        severity=disaster.severity,
        status=disaster.status,
        reporter_id=disaster.reported_by_id,
        initiated_by=actor.id,
    )


class DisasterService:
    """
    Business logic for the disaster record lifecycle.

    Error Handling Strategy:
        Application exceptions (NotFound, Forbidden, Conflict, Validation)
        propagate unchanged. Anything else is logged with its stack trace
        and wrapped in DatabaseError so no internals reach the client.
    """

    # ── Loading ───────────────────────────────────────────────────────────

    async def _load(self, db: AsyncSession, disaster_id: uuid.UUID) -> Disaster:
        """Fetch by id regardless of visibility; refreshes an already-loaded instance."""
        result = await db.execute(
            select(Disaster)
            .where(Disaster.id == disaster_id)
            .execution_options(populate_existing=True)
        )
        disaster = result.scalar_one_or_none()
        if disaster is None:
            raise NotFoundError(resource="disaster", resource_id=str(disaster_id))
        return disaster

    # ── Create ────────────────────────────────────────────────────────────

    async def create(
        self,
        db: AsyncSession,
        reporter: User,
        data: DisasterCreate,
        uploads: Sequence[Upload] = (),
    ) -> Tuple[Disaster, DisasterEvent]:
        """
        Persist a new report with status 'pending'.

        Workflow:
            1. Check the caller may file reports (volunteers may not)
            2. Validate and store every image (nothing is stored if one fails)
            3. INSERT and COMMIT the record
            4. Reload it with reporter/assignee and build the created event

        Raises:
            ForbiddenError: caller's role may not create reports
            ValidationError: an image is invalid, or too many images
            DatabaseError: the insert failed (stored images are removed)
        """
        policy.ensure_allowed(Operation.CREATE, reporter.role, reporter.id)

        image_urls = await file_service.store_images(uploads) if uploads else []

        try:
            disaster = Disaster(
                title=data.title,
                description=data.description,
                type=data.type.value,
                severity=data.severity.value,
                address=data.location.address,
                latitude=data.location.coordinates.lat,
                longitude=data.location.coordinates.lng,
                status=DisasterStatus.PENDING.value,
                notes=[],
                images=image_urls,
                estimated_casualties=data.estimated_casualties,
                estimated_damage=data.estimated_damage.value if data.estimated_damage else None,
                emergency_contacts=(
                    [c.model_dump(exclude_none=True) for c in data.emergency_contacts]
                    if data.emergency_contacts is not None else None
                ),
                reported_by_id=reporter.id,
            )
            db.add(disaster)
            await db.commit()
            disaster = await self._load(db, disaster.id)
        except Exception as e:
            await db.rollback()
            await file_service.cleanup_urls(image_urls)
            if isinstance(e, DisasterHubError):
                raise
            logger.error("Unexpected error creating disaster: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="An error occurred while saving the report. Please try again.",
                context={"original_error": type(e).__name__},
            )

        logger.info(
            "Disaster %s created by %s (type=%s, severity=%s, images=%d)",
            disaster.id, reporter.id, disaster.type, disaster.severity, len(image_urls),
        )
        return disaster, _event(EventType.DISASTER_CREATED, disaster, reporter)

    # ── Read ──────────────────────────────────────────────────────────────

    async def get(self, db: AsyncSession, caller: User, disaster_id: uuid.UUID) -> Disaster:
        """
        Single record, subject to the caller's visibility.

        A record the caller may not see is reported as missing.
        """
        try:
            result = await db.execute(
                select(Disaster).where(
                    Disaster.id == disaster_id,
                    policy.visibility_clause(caller.role, caller.id),
                )
            )
            disaster = result.scalar_one_or_none()
        except Exception as e:
            logger.error("Database error fetching disaster %s: %s", disaster_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the disaster. Please try again.",
                context={"disaster_id": str(disaster_id)},
            )

        if disaster is None:
            raise NotFoundError(resource="disaster", resource_id=str(disaster_id))
        return disaster

    async def list_disasters(
        self,
        db: AsyncSession,
        caller: User,
        status: Optional[str] = None,
        disaster_type: Optional[str] = None,
        severity: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[List[Disaster], int, int]:
        """
        Newest-first page of the disasters visible to `caller`.

        Query plan (volunteer, no filters):
            SELECT ... FROM disasters
            WHERE (status = 'pending' OR assigned_to_id = :me)
            ORDER BY created_at DESC LIMIT :limit OFFSET :offset

        Returns:
            (disasters, total, pages) with pages = ceil(total / limit)
        """
        conditions = [policy.visibility_clause(caller.role, caller.id)]
        if status:
            conditions.append(Disaster.status == status)
        if disaster_type:
            conditions.append(Disaster.type == disaster_type)
        if severity:
            conditions.append(Disaster.severity == severity)

        try:
            total = (
                await db.execute(select(func.count(Disaster.id)).where(*conditions))
            ).scalar() or 0

            result = await db.execute(
                select(Disaster)
                .where(*conditions)
                .order_by(Disaster.created_at.desc(), Disaster.id)
                .limit(limit)
                .offset((page - 1) * limit)
            )
            disasters = list(result.scalars().all())
        except Exception as e:
            logger.error("Database error listing disasters: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve disasters. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return disasters, total, math.ceil(total / limit)

    async def nearby(
        self,
        db: AsyncSession,
        caller: User,
        lat: float,
        lng: float,
        distance: int = DEFAULT_NEARBY_DISTANCE,
    ) -> List[Disaster]:
        """Visible disasters inside the bounding box around (lat, lng), newest first."""
        min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, distance)
        try:
            result = await db.execute(
                select(Disaster)
                .where(
                    Disaster.latitude.between(min_lat, max_lat),
                    Disaster.longitude.between(min_lng, max_lng),
                    policy.visibility_clause(caller.role, caller.id),
                )
                .order_by(Disaster.created_at.desc())
            )
            return list(result.scalars().all())
        except Exception as e:
            logger.error("Database error in nearby query: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve nearby disasters. Please try again.",
                context={"error_type": type(e).__name__},
            )

    # ── Status transition ─────────────────────────────────────────────────

    async def update_status(
        self,
        db: AsyncSession,
        caller: User,
        disaster_id: uuid.UUID,
        data: DisasterStatusUpdate,
    ) -> Tuple[Disaster, DisasterEvent]:
        """
        Move a report through the status state machine.

        Workflow:
            1. Load (NotFoundError if absent)
            2. Authorize against the loaded record (ForbiddenError)
            3. Check the transition (ConflictError)
            4. Compare-and-swap UPDATE on the status that was read, then COMMIT
            5. Reload and build the status-changed event

        Side effects of the write:
            accepted by a volunteer → assigned_to = that volunteer
            resolved                → resolved_at = now
            notes given             → appended as {text, author, timestamp}
        """
        disaster = await self._load(db, disaster_id)
        policy.ensure_allowed(Operation.UPDATE_STATUS, caller.role, caller.id, disaster)

        target = data.status
        current = disaster.status
        policy.ensure_transition(current, target)

        now = datetime.now(timezone.utc)
        values = {"status": target.value}
        if target is DisasterStatus.ACCEPTED and caller.role == Role.VOLUNTEER.value:
            values["assigned_to_id"] = caller.id
        if target is DisasterStatus.RESOLVED:
            values["resolved_at"] = now
        if data.notes:
            values["notes"] = list(disaster.notes or []) + [{
                "text": data.notes,
                "author": str(caller.id),
                "timestamp": now.isoformat(),
            }]

        try:
            result = await db.execute(
                update(Disaster)
                .where(Disaster.id == disaster_id, Disaster.status == current)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                raise ConflictError(
                    message="Disaster status was changed by another request. Reload and try again.",
                    context={"disaster_id": str(disaster_id), "expected": current},
                )
            await db.commit()
            disaster = await self._load(db, disaster_id)
        except DisasterHubError:
            raise
        except Exception as e:
            await db.rollback()
            logger.error("Unexpected error updating status of %s: %s", disaster_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the disaster status. Please try again.",
                context={"disaster_id": str(disaster_id)},
            )

        logger.info(
            "Disaster %s status %s → %s by %s (%s)",
            disaster_id, current, target.value, caller.id, caller.role,
        )
        return disaster, _event(EventType.STATUS_CHANGED, disaster, caller)

    # ── Details edit ──────────────────────────────────────────────────────

    async def update_details(
        self,
        db: AsyncSession,
        caller: User,
        disaster_id: uuid.UUID,
        data: DisasterUpdate,
    ) -> Disaster:
        """
        Merge the provided fields into the record. Status, reporter,
        assignment and location are never touched here, and no notification
        is sent.
        """
        disaster = await self._load(db, disaster_id)
        policy.ensure_allowed(Operation.UPDATE_DETAILS, caller.role, caller.id, disaster)

        changes = {
            name: value
            for name, value in data.model_dump(exclude_unset=True, mode="json").items()
            if value is not None or name not in REQUIRED_DETAIL_FIELDS
        }
        if not changes:
            return disaster

        try:
            for field_name, value in changes.items():
                if field_name == "emergency_contacts" and value is not None:
                    value = [{k: v for k, v in contact.items() if v is not None} for contact in value]
                setattr(disaster, field_name, value)
            await db.commit()
            disaster = await self._load(db, disaster_id)
        except Exception as e:
            await db.rollback()
            logger.error("Unexpected error editing disaster %s: %s", disaster_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the disaster. Please try again.",
                context={"disaster_id": str(disaster_id)},
            )

        logger.info("Disaster %s edited by %s: %s", disaster_id, caller.id, sorted(changes))
        return disaster

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete(self, db: AsyncSession, caller: User, disaster_id: uuid.UUID) -> None:
        """
        Remove a report and its notifications (ON DELETE CASCADE), then
        best-effort remove its stored images.

        The role check runs before the lookup, so non-admins get
        ForbiddenError even for ids that do not exist.
        """
        policy.ensure_allowed(Operation.DELETE, caller.role, caller.id)
        disaster = await self._load(db, disaster_id)
        images = list(disaster.images or [])

        try:
            await db.delete(disaster)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("Unexpected error deleting disaster %s: %s", disaster_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not delete the disaster. Please try again.",
                context={"disaster_id": str(disaster_id)},
            )

        await file_service.cleanup_urls(images)
        logger.info("Disaster %s deleted by %s", disaster_id, caller.id)


# ── Singleton Instance ────────────────────────────────────────────────────
disaster_service = DisasterService()

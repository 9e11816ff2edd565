"""
DisasterHub Backend — Notification Service (Fan-out & Inbox)
==============================================================

What:  Turns disaster lifecycle events into one Notification row per
       recipient, pushes each to the recipient's realtime channel, and
       serves the recipient's inbox (list, unread count, read flags, delete).
Who:   `dispatch` is scheduled by the disaster routes as a FastAPI
       background task; the inbox methods back /api/notifications.
When:  After a disaster is created or its status changes.

Fan-out Flow:
    ┌────────────────┐   commit   ┌───────────────┐  BackgroundTasks  ┌──────────────┐
    │ DisasterService│──────────▶│ DisasterEvent │─────────────────▶│  dispatch()  │
    │ (request)      │            │ (plain data)  │                   │ own session  │
    └────────────────┘            └───────────────┘                   └──────┬───────┘
                                                                              │ per recipient
                                                              ┌───────────────┴───────────────┐
                                                              │ INSERT + COMMIT → hub.publish │
                                                              └───────────────────────────────┘

    disaster_created → every active volunteer and every active admin
    status_changed   → the reporter only

Failure Isolation:
    Each recipient is written in its own transaction. A failed write is
    rolled back, logged and skipped; a failed push is logged. Nothing raised
    here reaches the HTTP response that triggered the event.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from disasterhub.config import settings
from disasterhub.database import async_session_factory
from disasterhub.exceptions import DatabaseError, DisasterHubError, NotFoundError
from disasterhub.models.enums import NotificationType, Priority, Role, Severity
from disasterhub.models.notification import Notification
from disasterhub.models.user import User
from disasterhub.schemas.notification import NotificationResponse
from disasterhub.services.realtime import RealtimeHub, realtime_hub

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    DISASTER_CREATED = "disaster_created"
    STATUS_CHANGED = "status_changed"


SEVERITY_PRIORITY = {
    Severity.LOW.value: Priority.LOW.value,
    Severity.MEDIUM.value: Priority.MEDIUM.value,
    Severity.HIGH.value: Priority.HIGH.value,
    Severity.CRITICAL.value: Priority.URGENT.value,
}


@dataclass(frozen=True)
class DisasterEvent:
    """
    A committed lifecycle change, detached from any database session.

    Carries the fields the templates and recipient rules need, so the
    fan-out never touches the request's ORM objects.
    """
    type: EventType
    disaster_id: uuid.UUID
    title: str
    disaster_type: str
    severity: str
    status: str
    reporter_id: uuid.UUID
    initiated_by: uuid.UUID
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class DispatchResult:
    recipients: int = 0
    delivered: int = 0
    failed: List[uuid.UUID] = field(default_factory=list)


def build_notification(event: DisasterEvent, recipient_id: uuid.UUID) -> Notification:
    """Render the row for one recipient of `event`."""
    metadata: Dict[str, Any] = {
        "disasterId": str(event.disaster_id),
        "disasterType": event.disaster_type,
        "severity": event.severity,
    }

    if event.type is EventType.DISASTER_CREATED:
        title = "New Disaster Reported"
        message = f"A new {event.disaster_type} disaster has been reported: {event.title}"
        ntype = NotificationType.DISASTER_ALERT.value
        priority = SEVERITY_PRIORITY.get(event.severity, Priority.MEDIUM.value)
    else:
        title = "Disaster Status Updated"
        message = f'Your disaster "{event.title}" status has been updated to {event.status}'
        ntype = NotificationType.STATUS_UPDATE.value
        priority = Priority.MEDIUM.value
        metadata["status"] = event.status

    # id, read flag and timestamp are set here so the realtime payload is
    # complete without a round trip to the database
    return Notification(
        id=uuid.uuid4(),
        title=title,
        message=message[:500],
        type=ntype,
        is_read=False,
        priority=priority,
        created_at=datetime.now(timezone.utc),
        action_url=f"/disasters/{event.disaster_id}",
        extra=metadata,
        recipient_id=recipient_id,
        related_disaster_id=event.disaster_id,
    )


class NotificationService:
    """
    Fan-out writer and per-recipient inbox.

    The fan-out takes its session factory and hub as constructor arguments
    so tests can substitute failing ones; inbox methods receive the request
    session like every other service.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        hub: Optional[RealtimeHub] = None,
    ):
        self.session_factory: async_sessionmaker = session_factory or async_session_factory
        self.hub = hub or realtime_hub

    # ══════════════════════════════════════════════════════════════════════
    # Fan-out
    # ══════════════════════════════════════════════════════════════════════

    async def resolve_recipients(self, db: AsyncSession, event: DisasterEvent) -> List[uuid.UUID]:
        if event.type is EventType.STATUS_CHANGED:
            return [event.reporter_id]

        result = await db.execute(
            select(User.id)
            .where(
                User.role.in_([Role.VOLUNTEER.value, Role.ADMIN.value]),
                User.is_active.is_(True),
            )
            .order_by(User.created_at)
        )
        return list(result.scalars().all())

    async def dispatch(self, event: DisasterEvent) -> DispatchResult:
        """
        Persist and push one notification per recipient of `event`.

        Never raises: every failure is logged and reflected in the returned
        DispatchResult instead.
        """
        outcome = DispatchResult()
        try:
            async with self.session_factory() as db:
                recipients = await self.resolve_recipients(db, event)
                outcome.recipients = len(recipients)

                for recipient_id in recipients:
                    notification = build_notification(event, recipient_id)
                    try:
                        db.add(notification)
                        await db.commit()
                    except Exception as e:
                        await db.rollback()
                        outcome.failed.append(recipient_id)
                        logger.error(
                            "Notification write failed for recipient %s (event=%s, disaster=%s): %s",
                            recipient_id, event.type.value, event.disaster_id, str(e),
                        )
                        continue

                    outcome.delivered += 1
                    await self._push(recipient_id, notification)
        except Exception as e:
            logger.error(
                "Notification fan-out aborted (event=%s, disaster=%s): %s",
                event.type.value, event.disaster_id, str(e), exc_info=True,
            )
            return outcome

        logger.info(
            "Fan-out %s for disaster %s: %d/%d notifications written",
            event.type.value, event.disaster_id, outcome.delivered, outcome.recipients,
        )
        return outcome

    async def _push(self, recipient_id: uuid.UUID, notification: Notification) -> None:
        if not self.hub.enabled:
            return
        try:
            payload = NotificationResponse.model_validate(notification).model_dump(
                mode="json", by_alias=True,
            )
            await self.hub.publish(recipient_id, {"event": "notification", "notification": payload})
        except Exception as e:
            logger.warning("Realtime push failed for recipient %s: %s", recipient_id, str(e))

    # ══════════════════════════════════════════════════════════════════════
    # Inbox
    # ══════════════════════════════════════════════════════════════════════

    async def list_for(self, db: AsyncSession, user_id: uuid.UUID) -> List[Notification]:
        """Own notifications, newest first, capped at notification_list_limit."""
        try:
            result = await db.execute(
                select(Notification)
                .where(Notification.recipient_id == user_id)
                .order_by(Notification.created_at.desc())
                .limit(settings.notification_list_limit)
            )
            return list(result.scalars().all())
        except Exception as e:
            logger.error("Database error listing notifications for %s: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve notifications. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def unread_count(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        try:
            result = await db.execute(
                select(func.count(Notification.id)).where(
                    Notification.recipient_id == user_id,
                    Notification.is_read.is_(False),
                )
            )
            return result.scalar() or 0
        except Exception as e:
            logger.error("Database error counting notifications for %s: %s", user_id, str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

    async def _get_own(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        notification_id: uuid.UUID,
    ) -> Notification:
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            # Someone else's notification is indistinguishable from a missing one
            raise NotFoundError(resource="notification", resource_id=str(notification_id))
        return notification

    async def mark_read(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        notification_id: uuid.UUID,
    ) -> Notification:
        try:
            notification = await self._get_own(db, user_id, notification_id)
            notification.is_read = True
            await db.flush()
            return notification
        except DisasterHubError:
            raise
        except Exception as e:
            logger.error("Database error marking notification %s read: %s", notification_id, str(e))
            raise DatabaseError(context={"notification_id": str(notification_id)})

    async def mark_all_read(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        """Flag every unread notification of `user_id` as read; returns how many changed."""
        try:
            result = await db.execute(
                update(Notification)
                .where(
                    Notification.recipient_id == user_id,
                    Notification.is_read.is_(False),
                )
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0
        except Exception as e:
            logger.error("Database error marking notifications read for %s: %s", user_id, str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

    async def delete(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        notification_id: uuid.UUID,
    ) -> None:
        try:
            result = await db.execute(
                delete(Notification)
                .where(
                    Notification.id == notification_id,
                    Notification.recipient_id == user_id,
                )
                .execution_options(synchronize_session=False)
            )
        except Exception as e:
            logger.error("Database error deleting notification %s: %s", notification_id, str(e))
            raise DatabaseError(context={"notification_id": str(notification_id)})

        if not result.rowcount:
            raise NotFoundError(resource="notification", resource_id=str(notification_id))


# ── Singleton Instance ────────────────────────────────────────────────────
notification_service = NotificationService()

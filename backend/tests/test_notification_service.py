"""
DisasterHub Backend — Notification Fan-out & Inbox Tests
==========================================================

What:  Tests for recipient resolution, notification templates, the
       per-recipient fan-out with failure isolation, realtime pushes, and
       the /api/notifications inbox.
How:   Fan-out is driven both through the API (background task) and
       directly via NotificationService with a session class that fails
       on chosen recipients.

Test Strategy:
    ✅ disaster_created → one row per active volunteer and active admin
    ✅ status_changed → the reporter only
    ✅ Templates: title, message, priority from severity, action URL, metadata
    ✅ Realtime push to subscribed connections; persistence without the hub
    ✅ Inbox: newest first, capped, unread count, mark read, delete
    ❌ One failing write does not stop the others nor the request
    ❌ Another user's notification → 404
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from disasterhub.config import settings
from disasterhub.database import async_session_factory, engine
from disasterhub.models.disaster import Disaster
from disasterhub.models.notification import Notification
from disasterhub.services.notification_service import (
    DisasterEvent,
    EventType,
    NotificationService,
    build_notification,
)
from disasterhub.services.realtime import RealtimeHub, realtime_hub
from conftest import auth_headers, create_user, disaster_payload, fetch, notifications_for


async def insert_disaster(reporter, severity="high") -> Disaster:
    async with async_session_factory() as session:
        disaster = Disaster(
            title="Gas leak on Elm Street",
            description="Strong smell of gas near the school.",
            type="other",
            severity=severity,
            address="Elm Street",
            latitude=10.0,
            longitude=10.0,
            status="pending",
            notes=[],
            images=[],
            reported_by_id=reporter.id,
        )
        session.add(disaster)
        await session.commit()
        return disaster


def event_for(disaster: Disaster, kind=EventType.DISASTER_CREATED, status=None) -> DisasterEvent:
    return DisasterEvent(
        type=kind,
        disaster_id=disaster.id,
        title=disaster.title,
        disaster_type=disaster.type,
        severity=disaster.severity,
        status=status or disaster.status,
        reporter_id=disaster.reported_by_id,
        initiated_by=disaster.reported_by_id,
    )


def failing_session_factory(failing_recipients):
    """Session factory whose commit fails while a listed recipient's row is pending."""

    class FailingSession(AsyncSession):
        async def commit(self):
            for obj in self.new:
                if isinstance(obj, Notification) and obj.recipient_id in failing_recipients:
                    raise RuntimeError("simulated write failure")
            await super().commit()

    return async_sessionmaker(engine, class_=FailingSession, expire_on_commit=False)


# ══════════════════════════════════════════════════════════════════════════
# Templates
# ══════════════════════════════════════════════════════════════════════════

class TestBuildNotification:

    def setup_method(self):
        self.disaster = Disaster(
            id=uuid.uuid4(),
            title="Dam overflow",
            type="flood",
            severity="critical",
            status="pending",
            reported_by_id=uuid.uuid4(),
        )
        self.recipient = uuid.uuid4()

    def test_created_template(self):
        n = build_notification(event_for(self.disaster), self.recipient)

        assert n.title == "New Disaster Reported"
        assert n.message == "A new flood disaster has been reported: Dam overflow"
        assert n.type == "disaster_alert"
        assert n.priority == "urgent"
        assert n.is_read is False
        assert n.recipient_id == self.recipient
        assert n.related_disaster_id == self.disaster.id
        assert n.action_url == f"/disasters/{self.disaster.id}"
        assert n.extra == {
            "disasterId": str(self.disaster.id),
            "disasterType": "flood",
            "severity": "critical",
        }

    @pytest.mark.parametrize("severity,priority", [
        ("low", "low"), ("medium", "medium"), ("high", "high"), ("critical", "urgent"),
    ])
    def test_priority_follows_severity(self, severity, priority):
        self.disaster.severity = severity

        assert build_notification(event_for(self.disaster), self.recipient).priority == priority

    def test_status_changed_template(self):
        event = event_for(self.disaster, EventType.STATUS_CHANGED, status="resolved")

        n = build_notification(event, self.recipient)

        assert n.title == "Disaster Status Updated"
        assert n.message == 'Your disaster "Dam overflow" status has been updated to resolved'
        assert n.type == "status_update"
        assert n.priority == "medium"
        assert n.extra["status"] == "resolved"


# ══════════════════════════════════════════════════════════════════════════
# Fan-out
# ══════════════════════════════════════════════════════════════════════════

class TestFanOut:

    @pytest.mark.asyncio
    async def test_created_reaches_active_volunteers_and_admins(self, test_client, reporter):
        active = [
            await create_user("volunteer"),
            await create_user("volunteer"),
            await create_user("admin"),
        ]
        inactive = [
            await create_user("volunteer", is_active=False),
            await create_user("admin", is_active=False),
        ]
        bystander = await create_user("user")

        response = await test_client.post(
            "/api/disasters", json=disaster_payload(severity="critical"), headers=auth_headers(reporter),
        )
        disaster_id = uuid.UUID(response.json()["disaster"]["id"])

        for user in active:
            rows = await notifications_for(user.id)
            assert len(rows) == 1
            assert rows[0].related_disaster_id == disaster_id
            assert rows[0].type == "disaster_alert"
            assert rows[0].priority == "urgent"
        for user in inactive + [bystander, reporter]:
            assert await notifications_for(user.id) == []

    @pytest.mark.asyncio
    async def test_status_change_reaches_reporter_only(self, test_client, reporter, volunteer, admin, disaster):
        await test_client.put(
            f"/api/disasters/{disaster['id']}/status", json={"status": "accepted"},
            headers=auth_headers(volunteer),
        )

        reporter_rows = await notifications_for(reporter.id)
        assert [n.type for n in reporter_rows] == ["status_update"]
        # volunteer and admin only hold the creation alert
        assert [n.type for n in await notifications_for(volunteer.id)] == ["disaster_alert"]
        assert [n.type for n in await notifications_for(admin.id)] == ["disaster_alert"]

    @pytest.mark.asyncio
    async def test_resolve_recipients_order(self, reporter):
        first = await create_user("volunteer")
        second = await create_user("admin")
        disaster = await insert_disaster(reporter)
        service = NotificationService()

        async with async_session_factory() as db:
            recipients = await service.resolve_recipients(db, event_for(disaster))
            status_recipients = await service.resolve_recipients(
                db, event_for(disaster, EventType.STATUS_CHANGED),
            )

        assert recipients == [first.id, second.id]
        assert status_recipients == [reporter.id]

    @pytest.mark.asyncio
    async def test_failed_write_is_isolated(self, reporter):
        ok_first = await create_user("volunteer")
        broken = await create_user("volunteer")
        ok_last = await create_user("admin")
        disaster = await insert_disaster(reporter)
        service = NotificationService(
            session_factory=failing_session_factory({broken.id}),
            hub=RealtimeHub(),
        )

        result = await service.dispatch(event_for(disaster))

        assert result.recipients == 3
        assert result.delivered == 2
        assert result.failed == [broken.id]
        assert len(await notifications_for(ok_first.id)) == 1
        assert len(await notifications_for(ok_last.id)) == 1
        assert await notifications_for(broken.id) == []

    @pytest.mark.asyncio
    async def test_every_write_failing_never_raises(self, reporter, volunteer):
        disaster = await insert_disaster(reporter)
        service = NotificationService(session_factory=failing_session_factory({volunteer.id}), hub=RealtimeHub())

        result = await service.dispatch(event_for(disaster))

        assert (result.recipients, result.delivered, result.failed) == (1, 0, [volunteer.id])

    @pytest.mark.asyncio
    async def test_unreachable_store_never_raises(self, reporter):
        disaster = await insert_disaster(reporter)

        def broken_factory():
            raise RuntimeError("database is down")

        result = await NotificationService(session_factory=broken_factory, hub=RealtimeHub()).dispatch(
            event_for(disaster),
        )

        assert result.recipients == 0
        assert result.delivered == 0

    @pytest.mark.asyncio
    async def test_request_succeeds_when_fan_out_fails(self, test_client, reporter, volunteer, monkeypatch):
        from disasterhub.services import notification_service as module

        monkeypatch.setattr(
            module.notification_service, "session_factory", failing_session_factory({volunteer.id}),
        )

        response = await test_client.post(
            "/api/disasters", json=disaster_payload(), headers=auth_headers(reporter),
        )

        assert response.status_code == 201
        assert await fetch(Disaster, uuid.UUID(response.json()["disaster"]["id"])) is not None
        assert await notifications_for(volunteer.id) == []


# ══════════════════════════════════════════════════════════════════════════
# Realtime
# ══════════════════════════════════════════════════════════════════════════

class TestRealtimePush:

    @pytest.mark.asyncio
    async def test_hub_publish_reaches_every_connection(self):
        hub = RealtimeHub()
        user_id = uuid.uuid4()
        tab_one, tab_two = hub.subscribe(user_id), hub.subscribe(user_id)

        delivered = await hub.publish(user_id, {"event": "ping"})

        assert delivered == 2
        assert tab_one.get_nowait() == tab_two.get_nowait() == {"event": "ping"}
        assert await hub.publish(uuid.uuid4(), {"event": "ping"}) == 0

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        hub = RealtimeHub()
        user_id = uuid.uuid4()
        queue = hub.subscribe(user_id)
        assert hub.subscriber_count == 1

        hub.unsubscribe(user_id, queue)
        hub.unsubscribe(user_id, queue)

        assert hub.subscriber_count == 0
        assert await hub.publish(user_id, {"event": "ping"}) == 0

    @pytest.mark.asyncio
    async def test_full_queue_drops_payload(self):
        hub = RealtimeHub()
        user_id = uuid.uuid4()
        queue = hub.subscribe(user_id)
        for i in range(queue.maxsize):
            queue.put_nowait({"n": i})

        assert await hub.publish(user_id, {"n": "overflow"}) == 0
        assert queue.qsize() == queue.maxsize

    @pytest.mark.asyncio
    async def test_disabled_hub_refuses_publish(self):
        with pytest.raises(RuntimeError):
            await RealtimeHub(enabled=False).publish(uuid.uuid4(), {})

    @pytest.mark.asyncio
    async def test_create_pushes_to_subscribed_volunteer(self, test_client, reporter, volunteer):
        queue = realtime_hub.subscribe(volunteer.id)
        try:
            response = await test_client.post(
                "/api/disasters", json=disaster_payload(), headers=auth_headers(reporter),
            )
            frame = await asyncio.wait_for(queue.get(), timeout=1)
        finally:
            realtime_hub.unsubscribe(volunteer.id, queue)

        assert frame["event"] == "notification"
        pushed = frame["notification"]
        assert pushed["title"] == "New Disaster Reported"
        assert pushed["recipientId"] == str(volunteer.id)
        assert pushed["relatedDisasterId"] == response.json()["disaster"]["id"]
        assert pushed["isRead"] is False

        [stored] = await notifications_for(volunteer.id)
        assert pushed["id"] == str(stored.id)

    @pytest.mark.asyncio
    async def test_persistence_without_realtime(self, test_client, reporter, volunteer, monkeypatch):
        monkeypatch.setattr(realtime_hub, "enabled", False)

        await test_client.post("/api/disasters", json=disaster_payload(), headers=auth_headers(reporter))

        assert len(await notifications_for(volunteer.id)) == 1


# ══════════════════════════════════════════════════════════════════════════
# Inbox
# ══════════════════════════════════════════════════════════════════════════

async def seed_inbox(recipient, disaster, count):
    """`count` notifications one minute apart, titled Notice 0..count-1."""
    base = datetime.now(timezone.utc) - timedelta(hours=1)
    async with async_session_factory() as session:
        rows = []
        for i in range(count):
            n = build_notification(event_for(disaster), recipient.id)
            n.title = f"Notice {i}"
            n.created_at = base + timedelta(minutes=i)
            session.add(n)
            rows.append(n)
        await session.commit()
        return rows


class TestInbox:

    @pytest.mark.asyncio
    async def test_list_newest_first(self, test_client, reporter, volunteer):
        disaster = await insert_disaster(reporter)
        await seed_inbox(volunteer, disaster, 3)

        response = await test_client.get("/api/notifications", headers=auth_headers(volunteer))

        body = response.json()
        assert body["count"] == 3
        assert [n["title"] for n in body["notifications"]] == ["Notice 2", "Notice 1", "Notice 0"]
        assert body["notifications"][0]["metadata"]["disasterId"] == str(disaster.id)

    @pytest.mark.asyncio
    async def test_list_is_capped(self, test_client, reporter, volunteer, monkeypatch):
        monkeypatch.setattr(settings, "notification_list_limit", 2)
        disaster = await insert_disaster(reporter)
        await seed_inbox(volunteer, disaster, 3)

        body = (await test_client.get("/api/notifications", headers=auth_headers(volunteer))).json()

        assert [n["title"] for n in body["notifications"]] == ["Notice 2", "Notice 1"]

    @pytest.mark.asyncio
    async def test_only_own_notifications(self, test_client, reporter, volunteer, other_volunteer):
        disaster = await insert_disaster(reporter)
        await seed_inbox(volunteer, disaster, 2)

        body = (await test_client.get("/api/notifications", headers=auth_headers(other_volunteer))).json()

        assert body == {"count": 0, "notifications": []}

    @pytest.mark.asyncio
    async def test_unread_count_and_mark_read(self, test_client, reporter, volunteer):
        disaster = await insert_disaster(reporter)
        rows = await seed_inbox(volunteer, disaster, 3)
        headers = auth_headers(volunteer)

        assert (await test_client.get("/api/notifications/unread-count", headers=headers)).json() == {"count": 3}

        response = await test_client.put(f"/api/notifications/{rows[0].id}/read", headers=headers)

        assert response.status_code == 200
        assert response.json()["notification"]["isRead"] is True
        assert (await test_client.get("/api/notifications/unread-count", headers=headers)).json() == {"count": 2}
        assert (await fetch(Notification, rows[0].id)).is_read is True

    @pytest.mark.asyncio
    async def test_mark_all_read(self, test_client, reporter, volunteer, other_volunteer):
        disaster = await insert_disaster(reporter)
        await seed_inbox(volunteer, disaster, 3)
        others = await seed_inbox(other_volunteer, disaster, 1)

        response = await test_client.put("/api/notifications/mark-all-read", headers=auth_headers(volunteer))

        assert response.json()["message"] == "All notifications marked as read"
        assert all(n.is_read for n in await notifications_for(volunteer.id))
        assert (await fetch(Notification, others[0].id)).is_read is False

    @pytest.mark.asyncio
    async def test_delete(self, test_client, reporter, volunteer):
        disaster = await insert_disaster(reporter)
        [row] = await seed_inbox(volunteer, disaster, 1)

        response = await test_client.delete(f"/api/notifications/{row.id}", headers=auth_headers(volunteer))

        assert response.status_code == 200
        assert response.json()["message"] == "Notification deleted"
        assert await fetch(Notification, row.id) is None

    @pytest.mark.asyncio
    async def test_foreign_notification_is_not_found(self, test_client, reporter, volunteer, other_volunteer):
        disaster = await insert_disaster(reporter)
        [row] = await seed_inbox(volunteer, disaster, 1)
        headers = auth_headers(other_volunteer)

        read = await test_client.put(f"/api/notifications/{row.id}/read", headers=headers)
        deleted = await test_client.delete(f"/api/notifications/{row.id}", headers=headers)

        assert read.status_code == 404
        assert deleted.status_code == 404
        stored = await fetch(Notification, row.id)
        assert stored is not None
        assert stored.is_read is False

    @pytest.mark.asyncio
    async def test_unknown_notification(self, test_client, volunteer):
        response = await test_client.put(f"/api/notifications/{uuid.uuid4()}/read", headers=auth_headers(volunteer))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_inbox_requires_authentication(self, test_client):
        assert (await test_client.get("/api/notifications")).status_code == 401

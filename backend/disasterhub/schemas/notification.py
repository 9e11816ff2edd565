"""DisasterHub Backend — Notification Schemas"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from disasterhub.schemas.common import APIModel


class NotificationResponse(APIModel):
    id: uuid.UUID
    title: str
    message: str
    type: str
    is_read: bool
    priority: str
    action_url: Optional[str] = None
    # ORM attribute is `extra` (the column is named "metadata")
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="extra")
    recipient_id: uuid.UUID
    related_disaster_id: Optional[uuid.UUID] = None
    created_at: datetime


class NotificationEnvelope(APIModel):
    notification: NotificationResponse


class NotificationListResponse(APIModel):
    count: int
    notifications: List[NotificationResponse]

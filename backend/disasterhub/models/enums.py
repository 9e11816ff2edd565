"""
Enumerations shared by the ORM models, schemas and services.

Stored as plain strings (VARCHAR) in the database; the enum classes are the
single source of the allowed values.
"""

from enum import Enum


class Role(str, Enum):
    USER = "user"
    VOLUNTEER = "volunteer"
    ADMIN = "admin"


class DisasterType(str, Enum):
    FLOOD = "flood"
    EARTHQUAKE = "earthquake"
    FIRE = "fire"
    HURRICANE = "hurricane"
    OTHER = "other"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DisasterStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    RESOLVED = "resolved"


class DamageLevel(str, Enum):
    MINIMAL = "minimal"
    MODERATE = "moderate"
    SIGNIFICANT = "significant"
    SEVERE = "severe"


class NotificationType(str, Enum):
    DISASTER_ALERT = "disaster_alert"
    STATUS_UPDATE = "status_update"
    ASSIGNMENT = "assignment"
    SYSTEM = "system"
    EMERGENCY = "emergency"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


def values(enum_cls) -> list:
    """Allowed raw values of an enum, in declaration order."""
    return [member.value for member in enum_cls]

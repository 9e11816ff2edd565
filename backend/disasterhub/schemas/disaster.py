"""
DisasterHub Backend — Disaster Schemas
========================================

What:  Request/response contracts for /api/disasters.
How:   The ORM row stores location flattened (address, latitude, longitude);
       the API nests it as location.address / location.coordinates.{lat,lng}.
       `DisasterResponse.from_model` performs that reshaping.

Field limits:
    title 5–100 chars, description 10–1000 chars (both trimmed first),
    latitude [-90, 90], longitude [-180, 180], address non-empty.
"""

import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field, StringConstraints

from disasterhub.models.disaster import Disaster
from disasterhub.models.enums import DamageLevel, DisasterStatus, DisasterType, Severity
from disasterhub.schemas.common import APIModel

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=5, max_length=100)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, min_length=10, max_length=1000)]
Address = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
NoteText = Annotated[str, StringConstraints(strip_whitespace=True, max_length=1000)]

# Largest value the Integer column holds
MAX_CASUALTIES = 2_147_483_647


# ══════════════════════════════════════════════════════════════════════════
# Nested value objects
# ══════════════════════════════════════════════════════════════════════════


class Coordinates(APIModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Location(APIModel):
    address: Address
    coordinates: Coordinates


class EmergencyContact(APIModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    phone: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
    relation: Optional[str] = None


class NoteEntry(APIModel):
    text: str
    author: uuid.UUID
    timestamp: datetime


class PersonSummary(APIModel):
    """The reporter/assignee as embedded in a disaster record."""
    id: uuid.UUID
    name: str
    email: str
    phone: str = ""


# ══════════════════════════════════════════════════════════════════════════
# Requests
# ══════════════════════════════════════════════════════════════════════════


class DisasterCreate(APIModel):
    title: Title
    description: Description
    type: DisasterType
    severity: Severity
    location: Location
    estimated_casualties: Optional[int] = Field(default=None, ge=0, le=MAX_CASUALTIES)
    estimated_damage: Optional[DamageLevel] = None
    emergency_contacts: Optional[List[EmergencyContact]] = None


class DisasterStatusUpdate(APIModel):
    status: DisasterStatus
    notes: Optional[NoteText] = None


class DisasterUpdate(APIModel):
    """
    Partial edit of a report's details.

    Status, reporter, assignment and location are not editable here; status
    has its own transition endpoint.
    """
    title: Optional[Title] = None
    description: Optional[Description] = None
    severity: Optional[Severity] = None
    estimated_casualties: Optional[int] = Field(default=None, ge=0, le=MAX_CASUALTIES)
    estimated_damage: Optional[DamageLevel] = None
    emergency_contacts: Optional[List[EmergencyContact]] = None


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class DisasterResponse(APIModel):
    id: uuid.UUID
    title: str
    description: str
    type: str
    severity: str
    location: Location
    status: str
    notes: List[NoteEntry] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    estimated_casualties: Optional[int] = None
    estimated_damage: Optional[str] = None
    emergency_contacts: Optional[List[Dict[str, Any]]] = None
    resolved_at: Optional[datetime] = None
    reported_by: Optional[PersonSummary] = None
    assigned_to: Optional[PersonSummary] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, disaster: Disaster) -> "DisasterResponse":
        return cls(
            id=disaster.id,
            title=disaster.title,
            description=disaster.description,
            type=disaster.type,
            severity=disaster.severity,
            location=Location(
                address=disaster.address,
                coordinates=Coordinates(lat=disaster.latitude, lng=disaster.longitude),
            ),
            status=disaster.status,
            notes=[NoteEntry.model_validate(note) for note in disaster.notes or []],
            images=list(disaster.images or []),
            estimated_casualties=disaster.estimated_casualties,
            estimated_damage=disaster.estimated_damage,
            emergency_contacts=disaster.emergency_contacts,
            resolved_at=disaster.resolved_at,
            reported_by=(
                PersonSummary.model_validate(disaster.reported_by)
                if disaster.reported_by is not None else None
            ),
            assigned_to=(
                PersonSummary.model_validate(disaster.assigned_to)
                if disaster.assigned_to is not None else None
            ),
            created_at=disaster.created_at,
            updated_at=disaster.updated_at,
        )


class DisasterEnvelope(APIModel):
    disaster: DisasterResponse


class DisasterListResponse(APIModel):
    count: int = Field(description="Number of records on this page")
    total: int = Field(description="Number of visible records matching the filters")
    page: int
    pages: int
    disasters: List[DisasterResponse]


class NearbyResponse(APIModel):
    count: int
    disasters: List[DisasterResponse]

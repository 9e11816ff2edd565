"""
DisasterHub Backend — Disaster Access Policy
==============================================

What:  The authorization matrix for disaster records, and the status state
       machine.
How:   One table maps (operation, role) to an access rule. The same rule
       drives both the in-memory check used before a mutation
       (`ensure_allowed`) and the SQL clause used by listings
       (`visibility_clause`), so the two can never disagree.

Access matrix:
                     user        volunteer           admin
    create           any         none                any
    view             reporter    pool_or_assignee    any
    update_status    reporter    pool_or_assignee    any
    update_details   reporter    reporter            any
    delete           none        none                any

    reporter:          disaster.reported_by_id == caller
    pool_or_assignee:  disaster.status == pending OR assigned_to_id == caller

Status state machine:
    pending  → pending | accepted | declined | resolved
    accepted → resolved
    declined, resolved: terminal
"""

import uuid
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from sqlalchemy import false, or_, true
from sqlalchemy.sql.elements import ColumnElement

from disasterhub.exceptions import ConflictError, ForbiddenError
from disasterhub.models.disaster import Disaster
from disasterhub.models.enums import DisasterStatus, Role


class Operation(str, Enum):
    CREATE = "create"
    VIEW = "view"
    UPDATE_STATUS = "update_status"
    UPDATE_DETAILS = "update_details"
    DELETE = "delete"


class Access(str, Enum):
    ANY = "any"
    REPORTER = "reporter"
    POOL_OR_ASSIGNEE = "pool_or_assignee"
    NONE = "none"


POLICY: Dict[Tuple[Operation, Role], Access] = {
    (Operation.CREATE, Role.USER): Access.ANY,
    (Operation.CREATE, Role.VOLUNTEER): Access.NONE,
    (Operation.CREATE, Role.ADMIN): Access.ANY,

    (Operation.VIEW, Role.USER): Access.REPORTER,
    (Operation.VIEW, Role.VOLUNTEER): Access.POOL_OR_ASSIGNEE,
    (Operation.VIEW, Role.ADMIN): Access.ANY,

    (Operation.UPDATE_STATUS, Role.USER): Access.REPORTER,
    (Operation.UPDATE_STATUS, Role.VOLUNTEER): Access.POOL_OR_ASSIGNEE,
    (Operation.UPDATE_STATUS, Role.ADMIN): Access.ANY,

    (Operation.UPDATE_DETAILS, Role.USER): Access.REPORTER,
    (Operation.UPDATE_DETAILS, Role.VOLUNTEER): Access.REPORTER,
    (Operation.UPDATE_DETAILS, Role.ADMIN): Access.ANY,

    (Operation.DELETE, Role.USER): Access.NONE,
    (Operation.DELETE, Role.VOLUNTEER): Access.NONE,
    (Operation.DELETE, Role.ADMIN): Access.ANY,
}

_VERBS = {
    Operation.CREATE: "create",
    Operation.VIEW: "view",
    Operation.UPDATE_STATUS: "update",
    Operation.UPDATE_DETAILS: "update",
    Operation.DELETE: "delete",
}

TRANSITIONS: Dict[DisasterStatus, FrozenSet[DisasterStatus]] = {
    DisasterStatus.PENDING: frozenset(DisasterStatus),
    DisasterStatus.ACCEPTED: frozenset({DisasterStatus.RESOLVED}),
    DisasterStatus.DECLINED: frozenset(),
    DisasterStatus.RESOLVED: frozenset(),
}


def access_for(operation: Operation, role: str) -> Access:
    """Look up the rule for a role; unknown roles get no access."""
    try:
        return POLICY[(operation, Role(role))]
    except (KeyError, ValueError):
        return Access.NONE


def matches(
    access: Access,
    user_id: uuid.UUID,
    disaster: Optional[Disaster] = None,
) -> bool:
    """Evaluate an access rule against a loaded record."""
    if access is Access.ANY:
        return True
    if access is Access.NONE or disaster is None:
        return False
    if access is Access.REPORTER:
        return disaster.reported_by_id == user_id
    return (
        disaster.status == DisasterStatus.PENDING.value
        or disaster.assigned_to_id == user_id
    )


def is_allowed(
    operation: Operation,
    role: str,
    user_id: uuid.UUID,
    disaster: Optional[Disaster] = None,
) -> bool:
    return matches(access_for(operation, role), user_id, disaster)


def ensure_allowed(
    operation: Operation,
    role: str,
    user_id: uuid.UUID,
    disaster: Optional[Disaster] = None,
) -> None:
    """Raise ForbiddenError unless the caller may perform `operation`."""
    if not is_allowed(operation, role, user_id, disaster):
        target = "this disaster" if disaster is not None else "disasters"
        raise ForbiddenError(
            message=f"Not authorized to {_VERBS[operation]} {target}",
            context={"operation": operation.value, "role": role},
        )


def visibility_clause(role: str, user_id: uuid.UUID) -> ColumnElement[bool]:
    """
    SQL predicate restricting a disaster query to what `role` may view.

    Composes conjunctively with any other `.where()` on the query.
    """
    access = access_for(Operation.VIEW, role)
    if access is Access.ANY:
        return true()
    if access is Access.REPORTER:
        return Disaster.reported_by_id == user_id
    if access is Access.POOL_OR_ASSIGNEE:
        return or_(
            Disaster.status == DisasterStatus.PENDING.value,
            Disaster.assigned_to_id == user_id,
        )
    return false()


def ensure_transition(current: str, target: DisasterStatus) -> None:
    """Raise ConflictError if `current → target` is not a defined transition."""
    if target not in TRANSITIONS[DisasterStatus(current)]:
        raise ConflictError(
            message=f"Cannot change status from '{current}' to '{target.value}'",
            context={"current": current, "requested": target.value},
        )

"""
Who may do what.

Every authorization decision in the service goes through ``can``; handlers
call ``require`` and let the resulting AuthorizationError become a 403.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from app.errors import AuthorizationError


class Role(str, Enum):
    USER = "user"
    MAPPER = "mapper"
    ADMIN = "admin"


class Action(str, Enum):
    EVENT_CREATE = "event.create"
    EVENT_UPDATE_STATUS = "event.update_status"
    EVENT_DELETE = "event.delete"
    EVENT_OVERRIDE_STATUS = "event.override_status"
    SESSION_START = "session.start"
    SESSION_TRACK = "session.track"
    SESSION_FINISH = "session.finish"
    LEDGER_WITHDRAW = "ledger.withdraw"
    ADMIN_MODERATE = "admin.moderate"


@dataclass(frozen=True)
class Actor:
    """An authenticated identity: a user, a mapper, or an admin."""

    id: UUID
    email: str
    role: Role
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_mapper(self) -> bool:
        return self.role == Role.MAPPER


# Admin requests authenticated by API key carry no account
API_KEY_ADMIN = Actor(id=UUID(int=0), email="api-key@safetymapper", role=Role.ADMIN, name="Admin")

_ROLE_ACTIONS = {
    Action.EVENT_CREATE: {Role.USER, Role.MAPPER},
    Action.EVENT_UPDATE_STATUS: {Role.MAPPER},
    Action.EVENT_OVERRIDE_STATUS: {Role.ADMIN},
    Action.SESSION_START: {Role.MAPPER},
    Action.SESSION_TRACK: {Role.MAPPER},
    Action.SESSION_FINISH: {Role.MAPPER},
    Action.LEDGER_WITHDRAW: {Role.MAPPER},
    Action.ADMIN_MODERATE: {Role.ADMIN},
}

_DENIED_MESSAGES = {
    Action.EVENT_CREATE: "Only users and mappers can report events",
    Action.EVENT_UPDATE_STATUS: "Only mappers can update event status",
    Action.EVENT_DELETE: "You can only delete your own events",
    Action.EVENT_OVERRIDE_STATUS: "Admin access required",
    Action.SESSION_START: "Mapper access required",
    Action.SESSION_TRACK: "Not your mapping session",
    Action.SESSION_FINISH: "Not your mapping session",
    Action.LEDGER_WITHDRAW: "Mapper access required",
    Action.ADMIN_MODERATE: "Admin access required",
}


def can(actor: Optional[Actor], action: Action, resource: Any = None) -> bool:
    """
    Decide whether ``actor`` may perform ``action`` on ``resource``.

    ``resource`` is the object acted on, when ownership matters: an Event for
    deletion, a MappingSession for tracking or finishing.
    """
    if actor is None:
        return False

    if action == Action.EVENT_DELETE:
        if actor.is_admin:
            return True
        return resource is not None and resource.reporter_id == actor.id

    if actor.role not in _ROLE_ACTIONS[action]:
        return False

    if action in (Action.SESSION_TRACK, Action.SESSION_FINISH) and resource is not None:
        return resource.mapper_id == actor.id

    return True


def require(actor: Optional[Actor], action: Action, resource: Any = None) -> None:
    """Raise AuthorizationError unless ``can(actor, action, resource)``."""
    if not can(actor, action, resource):
        raise AuthorizationError(_DENIED_MESSAGES[action])

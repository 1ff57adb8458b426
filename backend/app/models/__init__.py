# Database models
from app.models.user import User, UserRole
from app.models.mapper import Mapper, MapperStatus, VehicleType
from app.models.event import Event, EventCategory, EventStatus, Severity
from app.models.event_update import EventUpdate
from app.models.mapping_session import MappingSession, SessionStatus
from app.models.route_point import RoutePoint
from app.models.transaction import Transaction, TransactionStatus, TransactionType

__all__ = [
    "User",
    "UserRole",
    "Mapper",
    "MapperStatus",
    "VehicleType",
    "Event",
    "EventCategory",
    "EventStatus",
    "Severity",
    "EventUpdate",
    "MappingSession",
    "SessionStatus",
    "RoutePoint",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]

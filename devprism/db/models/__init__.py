"""Registry models package."""

from devprism.db.models.port_allocation import PortAllocation
from devprism.db.models.reservation import Reservation
from devprism.db.models.session import SessionMode, SessionRecord

__all__ = [
    "SessionRecord",
    "SessionMode",
    "PortAllocation",
    "Reservation",
]

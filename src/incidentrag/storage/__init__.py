"""Structured record store for extracted incidents."""

from .database import Base, create_engine, create_session_maker, init_schema
from .models import IncidentRecord
from .repository import IncidentRepository, IncidentStore

__all__ = [
    "Base",
    "IncidentRecord",
    "IncidentRepository",
    "IncidentStore",
    "create_engine",
    "create_session_maker",
    "init_schema",
]

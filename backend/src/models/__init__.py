"""
SQLAlchemy models for the timekeeper application.

This module provides the declarative base class and imports all models
to ensure they are registered with SQLAlchemy's metadata.
"""

from sqlalchemy.orm import declarative_base

# Create the declarative base class
# All models will inherit from this Base class
Base = declarative_base()


# Import all models here so they are registered with Base.metadata
# This is required for Alembic autogenerate to detect models
from backend.src.models.location import Location
from backend.src.models.recurring_template import RecurringTemplate
from backend.src.models.event_instance import EventInstance
from backend.src.models.event_exception import EventException

# Export Base and all models
__all__ = [
    "Base",
    "Location",
    "RecurringTemplate",
    "EventInstance",
    "EventException",
]

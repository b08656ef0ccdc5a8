"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and shared enums (StationType, SourceMode)
    station: Station registry keyed by the upstream station id
    reading: Rainfall / river level readings keyed by (station_id, recorded_at)

Usage:
    from models.station import Station
    from models.reading import Reading
    from models.base import StationType

Relationships:
    - Station -> Reading (one-to-many through readings.station_id)
"""

__all__ = [
    "Base",
    "StationType",
    "SourceMode",
    "Station",
    "Reading",
]

from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Index
from models.base import Base


class Reading(Base):
    """
    Time series of station measurements.

    One row per (station_id, recorded_at). A row may hold both a rainfall and
    a water level value when two ingests hit the same key; conflicting writes
    merge column by column and never null out a stored measurement.
    """
    __tablename__ = "readings"

    station_id = Column(
        String(64),
        ForeignKey("stations.station_id"),
        primary_key=True,
    )
    recorded_at = Column(DateTime(timezone=True), primary_key=True)

    rain_mm = Column(Float, nullable=True)
    river_level_m = Column(Float, nullable=True)
    source = Column(String(64), nullable=False)

    __table_args__ = (
        Index("idx_readings_recorded_at", "recorded_at"),
    )

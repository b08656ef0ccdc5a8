from sqlalchemy import Column, String, Boolean, Float, DateTime, Index, func
from models.base import Base


class Station(Base):
    """
    Station registry.

    Design:
    - station_id is assigned by PublicInfoBanjir and stable across runs
    - station_type is the last observed role, not a union of roles
    - lat/lon are never written by the ingestion pipeline
    - rows are never deleted; upserts always set is_active = TRUE
    """
    __tablename__ = "stations"

    station_id = Column(String(64), primary_key=True)

    name = Column(String(255), nullable=False)
    state = Column(String(16), nullable=True, index=True)
    district = Column(String(255), nullable=True)

    lat = Column(Float, nullable=True)
    lon = Column(Float, nullable=True)

    station_type = Column(String(32), nullable=False)
    source = Column(String(64), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_stations_state_district", "state", "district"),
        Index("idx_stations_active", "is_active"),
    )

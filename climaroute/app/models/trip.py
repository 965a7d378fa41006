"""
Trip database model.

A trip is created when a driver starts driving a selected route and is
closed by exactly one completion transition.
"""

from sqlalchemy import Column, Integer, String, Float, Text, DateTime, Enum, JSON
from climaroute.app.core.clock import utcnow
from climaroute.app.db.session import Base
from climaroute.app.models.trip_enums import TripStatus


class Trip(Base):
    """
    Trip model.

    Owned by the driver identified by driver_email. Weather snapshots are
    stored as value copies so later forecasts never rewrite history.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership
    driver_email = Column(String(255), nullable=False, index=True)
    vehicle_id = Column(String(64), nullable=False)

    # Route endpoints
    origin_label = Column(String(255), nullable=False)
    destination_label = Column(String(255), nullable=False)
    origin_lat = Column(Float, nullable=True)
    origin_lon = Column(Float, nullable=True)
    destination_lat = Column(Float, nullable=True)
    destination_lon = Column(Float, nullable=True)

    # Status
    status = Column(Enum(TripStatus), default=TripStatus.CREATED, nullable=False, index=True)

    # Live telemetry
    current_lat = Column(Float, nullable=True)
    current_lon = Column(Float, nullable=True)
    current_speed = Column(Float, nullable=False, default=0.0)
    eta = Column(String(32), nullable=True)
    last_telemetry_at = Column(DateTime, nullable=True)

    # Weather snapshots (copied at creation / completion)
    start_weather = Column(JSON, nullable=True)
    end_weather = Column(JSON, nullable=True)

    notes = Column(Text, nullable=True)

    # Display labels and timestamps
    start_time = Column(String(32), nullable=True)
    end_time = Column(String(32), nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Trip(id={self.id}, driver='{self.driver_email}', status='{self.status.value}')>"

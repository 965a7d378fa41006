"""
SOS Alert database model.

At most one unresolved alert per driver, enforced by a partial unique index.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, Index, text
from climaroute.app.core.clock import utcnow
from climaroute.app.db.session import Base
from climaroute.app.models.trip_enums import SosAlertType


class SosAlert(Base):
    """
    SOS Alert model.

    An alert is active while resolved_at is NULL.
    """
    __tablename__ = "sos_alerts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    driver_email = Column(String(255), nullable=False, index=True)
    vehicle_id = Column(String(64), nullable=True)
    type = Column(Enum(SosAlertType), nullable=False)
    location = Column(String(255), nullable=False)

    # InProgress trip at the time the alert was raised
    trip_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    resolved_at = Column(DateTime, nullable=True)

    # Unique constraint: only one active alert per driver
    __table_args__ = (
        Index('ix_sos_alerts_active_driver', 'driver_email', unique=True,
              postgresql_where=text('resolved_at IS NULL'),
              sqlite_where=text('resolved_at IS NULL')),
    )

    @property
    def is_active(self) -> bool:
        return self.resolved_at is None

    def __repr__(self):
        return f"<SosAlert(id={self.id}, driver='{self.driver_email}', active={self.is_active})>"

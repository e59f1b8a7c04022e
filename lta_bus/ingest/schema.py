"""
Database Schema Module

SQLAlchemy models for the bus data store and atomic database initialization.
The layout is fixed: no migrations, drop+recreate when it changes.

Tables:
    - bus_stops: one row per LTA bus stop code
    - bus_routes: one row per (stop, bus service) pairing
    - schedule_entries: first/last bus per route and day class
"""

import enum
import logging

from sqlalchemy import (
    Column, Integer, String, Float, Text, ForeignKey, CheckConstraint
)
from sqlalchemy.orm import relationship

from lta_bus.data.db_broker import Base

logger = logging.getLogger(__name__)


class DayClass(enum.Enum):
    """Schedule buckets used by DataMall; the value is the stored code."""

    WEEKDAY = 'wd'
    SATURDAY = 'sat'
    SUNDAY = 'sun'

    @property
    def payload_key(self) -> str:
        """Field holding the {fb, lb} pair in the raw payload, e.g. 'wd_flb'."""
        return f"{self.value}_flb"


class Stop(Base):
    """Bus stop keyed by its externally assigned numeric code."""

    __tablename__ = 'bus_stops'

    identifier = Column(Integer, primary_key=True, autoincrement=False)
    road_name = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Relationships
    routes = relationship('Route', back_populates='stop')

    def to_dict(self):
        return {
            'identifier': self.identifier,
            'road_name': self.road_name,
            'description': self.description,
            'latitude': self.latitude,
            'longitude': self.longitude,
        }

    def __repr__(self):
        return f"<Stop(id={self.identifier}, road='{self.road_name}', desc='{self.description}')>"


class Route(Base):
    """A bus service calling at a stop; id is '{stop code}-{service no}'."""

    __tablename__ = 'bus_routes'

    route_identifier = Column(String(64), primary_key=True)
    stop_identifier = Column(Integer, ForeignKey('bus_stops.identifier'), nullable=False, index=True)
    line_number = Column(Text, nullable=False)
    operator = Column(Text, nullable=True)
    sequence = Column(Integer, nullable=True)

    # Relationships
    stop = relationship('Stop', back_populates='routes')
    schedules = relationship('ScheduleEntry', back_populates='route')

    def to_dict(self):
        return {
            'route_identifier': self.route_identifier,
            'stop_identifier': self.stop_identifier,
            'line_number': self.line_number,
            'operator': self.operator,
            'sequence': self.sequence,
        }

    def __repr__(self):
        return f"<Route(id='{self.route_identifier}', stop={self.stop_identifier}, line='{self.line_number}')>"


class ScheduleEntry(Base):
    """First and last departure of a route for one day class."""

    __tablename__ = 'schedule_entries'

    route_identifier = Column(String(64), ForeignKey('bus_routes.route_identifier'), primary_key=True)
    day_class = Column(String(3), primary_key=True)
    first_bus = Column(Text, nullable=False)
    last_bus = Column(Text, nullable=False)

    # Relationships
    route = relationship('Route', back_populates='schedules')

    __table_args__ = (
        CheckConstraint(
            "day_class IN ({})".format(", ".join(f"'{d.value}'" for d in DayClass)),
            name='ck_schedule_day_class'
        ),
    )

    def to_dict(self):
        return {
            'route_identifier': self.route_identifier,
            'day_class': self.day_class,
            'first_bus': self.first_bus,
            'last_bus': self.last_bus,
        }

    def __repr__(self):
        return f"<ScheduleEntry(route='{self.route_identifier}', day='{self.day_class}', {self.first_bus}-{self.last_bus})>"


# ============================================================================
# DATABASE INITIALIZATION
# ============================================================================

def initialize_database(engine, drop_existing=False):
    """
    Initialize database schema atomically.

    Args:
        engine: SQLAlchemy engine instance
        drop_existing: If True, drops all existing tables before creation
    """
    if drop_existing:
        logger.warning("Dropping all existing tables")
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)
    logger.info("Database schema initialized")

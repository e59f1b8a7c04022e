"""
Read-only queries over the bus data store.

All functions take an open session and return plain dicts so results stay
usable after the session is closed.
"""

import math
from typing import Dict, List, Optional

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session

from lta_bus.ingest.schema import Stop

EARTH_RADIUS_KM = 6371.0
MIN_QUERY_LENGTH = 2
SEARCH_LIMIT = 50
NEARBY_LIMIT = 20


def is_searchable(query: Optional[str]) -> bool:
    """Queries shorter than two characters never reach the store."""
    return bool(query) and len(query) >= MIN_QUERY_LENGTH


def search_stops(session: Session, query: str) -> List[Dict]:
    """
    Substring search over stop code, description and road name.

    Args:
        session: SQLAlchemy session
        query: Text to look for; LIKE wildcards in it match literally

    Returns:
        Up to 50 stops ordered by road name
    """
    if not is_searchable(query):
        return []

    stops = session.query(Stop).filter(
        or_(
            cast(Stop.identifier, String).contains(query, autoescape=True),
            Stop.description.contains(query, autoescape=True),
            Stop.road_name.contains(query, autoescape=True),
        )
    ).order_by(Stop.road_name, Stop.identifier).limit(SEARCH_LIMIT).all()

    return [stop.to_dict() for stop in stops]


def get_stop(session: Session, identifier: int) -> Optional[Dict]:
    stop = session.get(Stop, identifier)
    return stop.to_dict() if stop is not None else None


def list_stop_ids(session: Session) -> List[int]:
    rows = session.query(Stop.identifier).order_by(Stop.identifier).all()
    return [row[0] for row in rows]


def count_stops(session: Session) -> int:
    return session.query(Stop).count()


def great_circle_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in kilometres (haversine form).

    Same quantity as 6371 * acos(cos φ1 cos φ2 cos Δλ + sin φ1 sin φ2), but
    identical points give exactly 0. The term under asin is clamped to [0, 1]
    against rounding.
    """
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    delta_phi = phi2 - phi1
    delta_lambda = math.radians(lon2) - math.radians(lon1)
    h = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(max(0.0, min(1.0, h))))


def find_nearby(session: Session, latitude: float, longitude: float,
                radius_km: float = 1.0) -> List[Dict]:
    """
    Stops within `radius_km` of a point, nearest first.

    Args:
        session: SQLAlchemy session
        latitude: Query latitude in degrees
        longitude: Query longitude in degrees
        radius_km: Inclusive search radius

    Returns:
        Up to 20 stop dicts, each with an added 'distance_km'
    """
    matches = []
    stops = session.query(Stop).filter(
        Stop.latitude.isnot(None), Stop.longitude.isnot(None)
    ).all()

    for stop in stops:
        distance = great_circle_distance_km(latitude, longitude, stop.latitude, stop.longitude)
        if distance <= radius_km:
            result = stop.to_dict()
            result['distance_km'] = distance
            matches.append(result)

    matches.sort(key=lambda s: (s['distance_km'], s['identifier']))
    return matches[:NEARBY_LIMIT]

"""
Payload Normalization

Flattens the hierarchical stop -> bus service -> day class payload into
three row batches ready for bulk insert. Pure transformation, no I/O.

Payload shape:
    {
        "66019": {
            "road_name": "...", "description": "...",
            "latitude": 1.3, "longitude": 103.8,
            "buses": {
                "73T": {"operator": "SBST", "stop_seq": 4,
                        "wd_flb": {"fb": "0500", "lb": "2300"},
                        "sat_flb": {...}, "sun_flb": {...}}
            }
        }
    }
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .schema import DayClass


class MalformedPayloadError(ValueError):
    """Raised when the provider payload cannot be keyed into stop rows."""


@dataclass
class StopRow:
    identifier: int
    road_name: Optional[str]
    description: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]


@dataclass
class RouteRow:
    route_identifier: str
    stop_identifier: int
    line_number: str
    operator: Optional[str]
    sequence: Optional[int]


@dataclass
class ScheduleRow:
    route_identifier: str
    day_class: str
    first_bus: str
    last_bus: str


@dataclass
class NormalizedBatches:
    stops: List[StopRow] = field(default_factory=list)
    routes: List[RouteRow] = field(default_factory=list)
    schedules: List[ScheduleRow] = field(default_factory=list)

    def counts(self) -> Tuple[int, int, int]:
        return len(self.stops), len(self.routes), len(self.schedules)


def make_route_identifier(stop_key: str, line_number: str) -> str:
    """Synthetic route key, e.g. '66019-73T'."""
    return f"{stop_key}-{line_number}"


def parse_stop_identifier(stop_key: Any) -> int:
    """
    Parse a stop key such as '01012' into its integer identifier.

    Raises:
        MalformedPayloadError: if the key is not a plain decimal number
    """
    text = str(stop_key)
    if not text.isdecimal():
        raise MalformedPayloadError(f"Bus stop key is not numeric: {stop_key!r}")
    return int(text)


def _first_present(record: Mapping, *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _has_time(value: Any) -> bool:
    return value is not None and value != ""


def schedule_times(bus: Mapping, day_class: DayClass) -> Optional[Tuple[str, str]]:
    """
    First/last bus pair for one day class, or None when either is missing.

    A half-filled pair is treated as absent rather than stored with a null.
    """
    times = bus.get(day_class.payload_key)
    if not isinstance(times, Mapping):
        return None
    first_bus, last_bus = times.get('fb'), times.get('lb')
    if not (_has_time(first_bus) and _has_time(last_bus)):
        return None
    return first_bus, last_bus


def iter_stop_records(payload: Mapping) -> Iterator[Tuple[str, int, Mapping]]:
    """Yield (original key, parsed identifier, record) in payload order."""
    seen: Dict[int, str] = {}
    for stop_key, record in payload.items():
        identifier = parse_stop_identifier(stop_key)
        if identifier in seen:
            raise MalformedPayloadError(
                f"Bus stop keys {seen[identifier]!r} and {stop_key!r} "
                f"share identifier {identifier}"
            )
        seen[identifier] = stop_key
        yield str(stop_key), identifier, record or {}


def normalize_payload(payload: Mapping) -> NormalizedBatches:
    """
    Walk the raw payload into stop, route and schedule batches.

    Args:
        payload: Mapping of stop code text -> stop record

    Returns:
        NormalizedBatches in input iteration order

    Raises:
        MalformedPayloadError: on a non-numeric or duplicated stop key
    """
    batches = NormalizedBatches()

    for stop_key, identifier, record in iter_stop_records(payload):
        batches.stops.append(StopRow(
            identifier=identifier,
            road_name=record.get('road_name'),
            description=_first_present(record, 'description', 'desc'),
            latitude=record.get('latitude'),
            longitude=record.get('longitude'),
        ))

        for line_number, bus in (record.get('buses') or {}).items():
            bus = bus or {}
            route_identifier = make_route_identifier(stop_key, line_number)
            batches.routes.append(RouteRow(
                route_identifier=route_identifier,
                stop_identifier=identifier,
                line_number=str(line_number),
                operator=bus.get('operator'),
                sequence=_first_present(bus, 'stop_seq', 'sequence'),
            ))

            for day_class in DayClass:
                times = schedule_times(bus, day_class)
                if times is None:
                    continue
                batches.schedules.append(ScheduleRow(
                    route_identifier=route_identifier,
                    day_class=day_class.value,
                    first_bus=times[0],
                    last_bus=times[1],
                ))

    return batches

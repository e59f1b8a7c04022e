import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DAY_CLASS_FIELDS = {
    "wd_flb": ("WD_FirstBus", "WD_LastBus"),
    "sat_flb": ("SAT_FirstBus", "SAT_LastBus"),
    "sun_flb": ("SUN_FirstBus", "SUN_LastBus"),
}

ARRIVAL_SLOTS = ("NextBus", "NextBus2", "NextBus3")


class LtaClient:
    def __init__(self, config):
        self.account_key = config.api_key
        self.base_url = config.base_url
        self.page_size = config.page_size
        self.timeout = config.timeout

        if not self.account_key:
            raise ValueError("LTA_API_KEY must be provided in the configuration.")

    def get_bus_stops(self) -> List[dict]:
        """
        Get every bus stop from DataMall.

        Returns:
            List of BusStop records (BusStopCode, RoadName, Description, Latitude, Longitude)
        """
        return self._execute_paged_request("BusStops")

    def get_bus_routes(self) -> List[dict]:
        """
        Get every (service, direction, stop) route record from DataMall.

        Returns:
            List of BusRoute records including first/last bus per day class
        """
        return self._execute_paged_request("BusRoutes")

    def fetch_transit_payload(self) -> Dict[str, dict]:
        """
        Build the hierarchical stop -> bus service payload used for ingestion.

        Returns:
            Mapping of bus stop code -> stop record with a 'buses' mapping
        """
        payload = {}
        for stop in self.get_bus_stops():
            payload[stop["BusStopCode"]] = {
                "road_name": stop.get("RoadName"),
                "description": stop.get("Description"),
                "latitude": stop.get("Latitude"),
                "longitude": stop.get("Longitude"),
                "buses": {},
            }

        unknown_stops = 0
        for route in self.get_bus_routes():
            stop = payload.get(route.get("BusStopCode"))
            if stop is None:
                unknown_stops += 1
                continue

            # Loop services call at some stops twice; keep the first visit
            service_no = route["ServiceNo"]
            if service_no in stop["buses"]:
                continue

            bus = {
                "operator": route.get("Operator"),
                "stop_seq": route.get("StopSequence"),
            }
            for key, (first_field, last_field) in DAY_CLASS_FIELDS.items():
                bus[key] = {
                    "fb": _clean_time(route.get(first_field)),
                    "lb": _clean_time(route.get(last_field)),
                }
            stop["buses"][service_no] = bus

        if unknown_stops:
            logger.warning("Dropped %d route records for unknown bus stops", unknown_stops)
        logger.info("Assembled payload for %d bus stops", len(payload))
        return payload

    def get_bus_arrivals(self, bus_stop_code: str, now: Optional[datetime] = None) -> Dict[str, dict]:
        """
        Get live arrival estimates for one stop.

        Args:
            bus_stop_code: LTA bus stop code (e.g. '83139')
            now: Reference time for minutes-to-arrival (default: current UTC time)

        Returns:
            Mapping of service number -> {'next_bus': {...}, 'next_bus2': {...}, ...}
        """
        response = self._execute_request("v3/BusArrival", {"BusStopCode": bus_stop_code})
        now = now or datetime.now(timezone.utc)

        arrivals = {}
        for service in response.get("Services", []):
            service_data = {}
            for index, slot in enumerate(ARRIVAL_SLOTS):
                next_bus = service.get(slot) or {}
                minutes = minutes_until(next_bus.get("EstimatedArrival"), now)
                if minutes is None:
                    continue
                key = "next_bus" if index == 0 else f"next_bus{index + 1}"
                service_data[key] = {
                    "arrival_time": minutes,
                    "type": next_bus.get("Type"),
                    "wheelchair_access": next_bus.get("Feature") == "WAB",
                    "capacity": next_bus.get("Load"),
                }
            arrivals[service["ServiceNo"]] = service_data

        return arrivals

    def _build_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint}"

    def _execute_request(self, endpoint: str, params: dict = None) -> dict:
        url = self._build_url(endpoint)
        headers = {"AccountKey": self.account_key, "accept": "application/json"}

        response = requests.get(url, headers=headers, params=params, timeout=self.timeout)
        response.raise_for_status()

        return response.json()

    def _execute_paged_request(self, endpoint: str) -> List[dict]:
        records = []
        skip = 0

        # DataMall pages are fixed size; a short page is the last one
        while True:
            page = self._execute_request(endpoint, {"$skip": skip}).get("value", [])
            records.extend(page)
            logger.debug("Fetched %d %s records (skip=%d)", len(page), endpoint, skip)

            if len(page) < self.page_size:
                break
            skip += self.page_size

        logger.info("Fetched %d %s records", len(records), endpoint)
        return records


def _clean_time(value):
    """DataMall uses '-' for no service on that day."""
    if value is None or value in ("", "-"):
        return None
    return value


def minutes_until(timestamp: Optional[str], now: datetime) -> Optional[int]:
    """Whole minutes from `now` to an ISO-8601 timestamp, floored at 0."""
    if not timestamp:
        return None
    try:
        arrival = datetime.fromisoformat(timestamp)
    except ValueError:
        logger.warning("Could not parse arrival timestamp %r", timestamp)
        return None

    if arrival.tzinfo is None:
        arrival = arrival.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    seconds = (arrival - now).total_seconds()
    return int(seconds // 60) if seconds > 0 else 0

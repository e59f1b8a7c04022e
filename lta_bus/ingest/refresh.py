"""
Refresh Controller

Entry point for the caller layer: first-run population, full refresh, and
the read queries. Every operation opens its own session; populate/refresh
report a RefreshOutcome instead of raising.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional

from lta_bus.data import queries
from lta_bus.data.db_broker import ConnectionBroker
from .batch_writer import write_batches, delete_all
from .normalizer import normalize_payload
from .schema import initialize_database

logger = logging.getLogger(__name__)


@dataclass
class RefreshOutcome:
    success: bool
    message: str
    row_count: int = 0


def default_provider() -> Mapping:
    """Fetch the raw payload from LTA DataMall."""
    from lta_bus.config.config_main import lta_config
    from lta_bus.data.lta.lta_client import LtaClient

    return LtaClient(lta_config).fetch_transit_payload()


class BusDataService:
    """Loads bus data into the store and answers stop queries."""

    def __init__(self, session_factory=None, provider: Callable[[], Mapping] = None,
                 chunk_size: int = None):
        """
        Args:
            session_factory: sessionmaker bound to the store (default: ConnectionBroker's)
            provider: Zero-argument callable returning the raw payload
            chunk_size: Rows per INSERT statement (default from ingestion config)
        """
        self.session_factory = session_factory or ConnectionBroker.get_session_factory()
        self.provider = provider or default_provider
        self.chunk_size = chunk_size

    def _session(self):
        return ConnectionBroker.get_session(self.session_factory)

    def init(self) -> RefreshOutcome:
        """Create missing tables, then populate if the store is empty."""
        try:
            with self._session() as session:
                initialize_database(session.get_bind())
        except Exception as e:
            logger.exception("Failed to initialize bus data store")
            return RefreshOutcome(success=False, message=str(e))
        return self.ensure_populated()

    def fetch_and_store(self) -> int:
        """
        Run fetch -> normalize -> write. Raises on any failure.

        Returns:
            Number of bus stops stored
        """
        logger.info("Fetching bus data from provider")
        payload = self.provider()
        batches = normalize_payload(payload)
        logger.info(
            "Normalized %d stops, %d routes, %d schedule entries", *batches.counts()
        )

        with self._session() as session:
            return write_batches(session, batches, self.chunk_size)

    def ensure_populated(self) -> RefreshOutcome:
        """Load from the provider only when no stops are stored yet."""
        try:
            with self._session() as session:
                count = queries.count_stops(session)

            if count == 0:
                logger.info("No bus stops found, fetching from API")
                loaded = self.fetch_and_store()
                return RefreshOutcome(
                    success=True,
                    message=f"Successfully loaded {loaded} bus stops from API",
                    row_count=loaded
                )

            logger.info("Database already contains %d bus stops", count)
            return RefreshOutcome(
                success=True,
                message=f"Database loaded with {count} existing bus stops",
                row_count=count
            )
        except Exception as e:
            logger.exception("Failed to check/populate bus data")
            return RefreshOutcome(success=False, message=str(e))

    def refresh(self) -> RefreshOutcome:
        """
        Replace all stored data with a fresh provider load.

        The delete and the reload commit separately; if the reload fails
        the store is left empty until the next ensure_populated().
        """
        logger.info("Refreshing bus stop data")
        try:
            with self._session() as session:
                delete_all(session)

            count = self.fetch_and_store()
        except Exception as e:
            logger.exception("Failed to refresh bus data")
            return RefreshOutcome(success=False, message=f"Refresh failed: {e}")

        logger.info("Data refresh complete: %d bus stops updated", count)
        return RefreshOutcome(
            success=True,
            message=f"Data refresh complete: {count} bus stops updated",
            row_count=count
        )

    def search_stops(self, query: str) -> List[Dict]:
        if not queries.is_searchable(query):
            return []
        with self._session() as session:
            return queries.search_stops(session, query)

    def get_stop(self, identifier: int) -> Optional[Dict]:
        with self._session() as session:
            return queries.get_stop(session, identifier)

    def list_stop_ids(self) -> List[int]:
        with self._session() as session:
            return queries.list_stop_ids(session)

    def find_nearby(self, latitude: float, longitude: float, radius_km: float = 1.0) -> List[Dict]:
        with self._session() as session:
            return queries.find_nearby(session, latitude, longitude, radius_km)

"""
LTA Bus Data Ingestion Module

Loads LTA DataMall bus stops, routes and first/last bus times into a
relational store and serves stop queries on top of it.

Entry Point:
    python -m lta_bus.ingest populate

Components:
    - schema: Database models and atomic initialization
    - normalizer: Raw payload -> stop/route/schedule row batches
    - batch_writer: Chunked transactional insert of the batches
    - refresh: Populate/refresh workflows and stop queries
    - orchestrator: Command line entry point
"""

from .schema import initialize_database, Base
from .refresh import BusDataService, RefreshOutcome

__all__ = ['initialize_database', 'Base', 'BusDataService', 'RefreshOutcome']

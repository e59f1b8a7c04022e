"""
Shared fixtures: an in-memory SQLite store and sample DataMall payloads.
"""

import pytest

from lta_bus.data.db_broker import ConnectionBroker
from lta_bus.ingest.schema import initialize_database


@pytest.fixture
def engine():
    """Fresh in-memory database with all tables created."""
    engine = ConnectionBroker.build_engine("sqlite://")
    initialize_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return ConnectionBroker.build_session_factory(engine)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def single_stop_payload():
    return {
        "1000": {
            "road_name": "Main St",
            "desc": "Near Park",
            "latitude": 1.30,
            "longitude": 103.80,
            "buses": {
                "12": {"operator": "X", "stop_seq": 1, "wd_flb": {"fb": "0500", "lb": "2300"}},
            },
        },
    }


@pytest.fixture
def sample_payload():
    return {
        "01012": {
            "road_name": "Victoria St",
            "description": "Hotel Grand Pacific",
            "latitude": 1.29684825487647,
            "longitude": 103.85253591654006,
            "buses": {
                "12": {
                    "operator": "GAS",
                    "stop_seq": 5,
                    "wd_flb": {"fb": "0500", "lb": "2300"},
                    "sat_flb": {"fb": "0515", "lb": "2310"},
                    "sun_flb": {"fb": "0530", "lb": "2320"},
                },
                "2": {
                    "operator": "SBST",
                    "stop_seq": 3,
                    "wd_flb": {"fb": "0600", "lb": "2330"},
                    "sat_flb": {"fb": "0610"},
                    "sun_flb": {"fb": None, "lb": None},
                },
            },
        },
        "66019": {
            "road_name": "Ang Mo Kio Ave 3",
            "description": "ABC Market",
            "latitude": 1.36978,
            "longitude": 103.84914,
            "buses": {
                "73T": {
                    "operator": "SBST",
                    "stop_seq": 12,
                    "wd_flb": {"fb": "0615", "lb": ""},
                },
            },
        },
        "83139": {
            "road_name": "Bedok North Rd",
            "description": "Blk 101",
            "latitude": 1.33,
            "longitude": 103.93,
            "buses": {},
        },
    }

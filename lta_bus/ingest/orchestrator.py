"""
Bus Data Command Line

Single entry point for loading and querying the bus data store.

Usage:
    python -m lta_bus.ingest populate
    python -m lta_bus.ingest refresh
    python -m lta_bus.ingest search "Orchard"
    python -m lta_bus.ingest nearby 1.3048 103.8318 --radius 0.5
"""

import argparse
import json
import logging
import sys
from datetime import datetime

from lta_bus.config.config_main import lta_config
from lta_bus.data.db_broker import ConnectionBroker

from .refresh import BusDataService

logger = logging.getLogger(__name__)


def run_populate(service: BusDataService, reset_db: bool = False) -> bool:
    """
    Create tables and load data if the store is empty.

    Args:
        service: Bus data service bound to the target store
        reset_db: Drop and recreate all tables first
    """
    overall_start = datetime.now()

    if reset_db:
        from .schema import initialize_database
        initialize_database(ConnectionBroker.get_engine(), drop_existing=True)

    outcome = service.init()
    duration = (datetime.now() - overall_start).total_seconds()
    _report(outcome, duration)
    return outcome.success


def run_refresh(service: BusDataService) -> bool:
    """Replace all stored data from the API."""
    overall_start = datetime.now()
    outcome = service.refresh()
    duration = (datetime.now() - overall_start).total_seconds()
    _report(outcome, duration)
    return outcome.success


def _report(outcome, duration: float):
    if outcome.success:
        logger.info("%s (%.2f seconds)", outcome.message, duration)
    else:
        logger.error("Pipeline failed: %s", outcome.message)


def _print_json(data):
    print(json.dumps(data, indent=2))


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description='LTA bus stop data loader and query tool',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # First run: create tables and load from DataMall
  python -m lta_bus.ingest populate

  # Replace everything with a fresh download
  python -m lta_bus.ingest refresh

  # Stops within 500 m of a point
  python -m lta_bus.ingest nearby 1.3048 103.8318 --radius 0.5
        """
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    populate = subparsers.add_parser('populate', help='Load data if the store is empty')
    populate.add_argument(
        '--reset-db',
        action='store_true',
        help='Drop and recreate all tables before loading (DESTRUCTIVE)'
    )

    subparsers.add_parser('refresh', help='Delete all data and reload from the API')

    search = subparsers.add_parser('search', help='Search stops by code, description or road')
    search.add_argument('query', type=str)

    stop = subparsers.add_parser('stop', help='Show one bus stop')
    stop.add_argument('identifier', type=int)

    subparsers.add_parser('ids', help='List all bus stop codes')

    nearby = subparsers.add_parser('nearby', help='Stops near a coordinate')
    nearby.add_argument('latitude', type=float)
    nearby.add_argument('longitude', type=float)
    nearby.add_argument('--radius', type=float, default=1.0, help='Radius in km (default: 1.0)')

    arrivals = subparsers.add_parser('arrivals', help='Live arrivals at a stop')
    arrivals.add_argument('bus_stop_code', type=str)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.command == 'arrivals':
        from lta_bus.data.lta.lta_client import LtaClient
        _print_json(LtaClient(lta_config).get_bus_arrivals(args.bus_stop_code))
        return

    service = BusDataService()

    if args.command == 'populate':
        if args.reset_db:
            print("\n⚠️  WARNING: --reset-db will DELETE ALL EXISTING DATA!")
            response = input("Are you sure you want to continue? (yes/no): ")
            if response.lower() != 'yes':
                print("Aborted.")
                sys.exit(0)
        sys.exit(0 if run_populate(service, reset_db=args.reset_db) else 1)
    elif args.command == 'refresh':
        sys.exit(0 if run_refresh(service) else 1)
    elif args.command == 'search':
        _print_json(service.search_stops(args.query))
    elif args.command == 'stop':
        result = service.get_stop(args.identifier)
        if result is None:
            print(f"Bus stop {args.identifier} not found")
            sys.exit(1)
        _print_json(result)
    elif args.command == 'ids':
        for identifier in service.list_stop_ids():
            print(identifier)
    elif args.command == 'nearby':
        _print_json(service.find_nearby(args.latitude, args.longitude, args.radius))


if __name__ == "__main__":
    main()

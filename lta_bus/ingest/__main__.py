"""
LTA Bus Data Module Entry Point

Allows running the loader via:
    python -m lta_bus.ingest [command] [args]
"""

from .orchestrator import main

if __name__ == "__main__":
    main()

"""
Script to run ingestion once for the given regions (default: all configured regions)

Usage:
    python scripts/run_ingestion.py PNG KDH
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import engine
from core.exceptions import IngestionException
from core.logging import setup_logging
from ingestion.runner import ingest_region
from ingestion.transformers.normalizer import canonical_region

setup_logging()
logger = logging.getLogger(__name__)


async def run_ingestion(regions):
    """Ingest each region in turn; one region failing does not stop the rest"""
    failed = []

    try:
        for region in regions:
            try:
                result = await ingest_region(region)
                logger.info(
                    f"{region}: mode={result.mode}, stations={result.upserted_stations}, "
                    f"readings={result.merged_readings}"
                )
            except IngestionException as e:
                logger.error(f"Ingestion failed for {region}: {e.message}", extra={"error_context": e.to_dict()})
                failed.append(region)

        logger.info(f"Ingestion finished: {len(regions) - len(failed)} ok, {len(failed)} failed")
    finally:
        await engine.dispose()

    return failed


def main():
    parser = argparse.ArgumentParser(description="Run flood telemetry ingestion once")
    parser.add_argument("regions", nargs="*", help="Region codes (default: INGEST_REGIONS)")
    args = parser.parse_args()

    regions = [canonical_region(r) for r in args.regions] or list(settings.INGEST_REGIONS)
    failed = asyncio.run(run_ingestion(regions))
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()

"""
Terminology ingestion script.

Loads NAMASTE, ICD-11 TM2, SNOMED CT and LOINC codes and curated mappings from
the CSV files in a data directory into the database.
"""

import argparse
import asyncio
from pathlib import Path

from loguru import logger

from namaste_bridge.config import settings
from namaste_bridge.db.session import AsyncSessionLocal, init_db
from namaste_bridge.logger import configure_logging
from namaste_bridge.services.concept_store import ConceptStore
from namaste_bridge.services.terminology_loader import TerminologyLoader

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


async def main(data_dir: Path) -> bool:
    """Main ingestion function."""
    logger.info("Starting terminology ingestion...")
    await init_db()

    if not data_dir.is_dir():
        logger.error(f"Data directory not found: {data_dir}")
        return False

    async with AsyncSessionLocal() as db:
        loader = TerminologyLoader(db)
        results = await loader.ingest_directory(data_dir)

        if not results:
            logger.warning(f"No terminology files found in {data_dir}")
            return False

        ok = True
        for filename, result in results.items():
            if result["success"]:
                logger.info(f"{filename}: loaded {result['loaded']}, skipped {result['skipped']}")
            else:
                ok = False
                logger.error(f"{filename}: {result.get('error', 'Unknown error')}")

        stats = await ConceptStore(db).count_statistics()
        for name, count in stats.items():
            logger.info(f"{name}: {count}")

    return ok


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Load terminology CSV files into the database")
    parser.add_argument("--data-dir", type=Path, default=DEFAULT_DATA_DIR, help="Directory holding the CSV files")
    args = parser.parse_args()

    configure_logging(settings.log_level)
    raise SystemExit(0 if asyncio.run(main(args.data_dir)) else 1)

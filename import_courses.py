"""Import a course catalog file (CSV or Excel) into the database.

Usage:
    python import_courses.py data/courses.csv
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from catalog.db import AsyncSessionMaker, engine
from catalog.logging_config import setup_logging
from catalog.pipelines.ingest import import_courses_from_path, result_payload


async def main(path: str) -> int:
    """Run the import and print the result as JSON."""
    try:
        async with AsyncSessionMaker() as session:
            result = await import_courses_from_path(session, path)
    finally:
        await engine.dispose()

    print(json.dumps(result_payload(result), indent=2, ensure_ascii=False))
    return 0 if result.success else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import a course catalog file")
    parser.add_argument("path", help="CSV or Excel file with one course per row")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(main(args.path)))

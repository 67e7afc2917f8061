"""Catalog seeding CLI — ``trias-seed``.

Loads the static catalog YAML and writes every theme and question into the
database, replacing rows that already exist.  Intended for deployment
scripts and local setup.

Examples::

    # Seed from catalog/v1 under the repo root
    uv run trias-seed

    # Create missing tables first, then seed from a custom directory
    uv run trias-seed --create-tables --catalog-dir ./catalog/v2
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

logger = logging.getLogger(__name__)


async def run_seed(
    *,
    catalog_dir: str | None = None,
    create: bool = False,
) -> tuple[int, int]:
    """Seed the catalog and return ``(theme_count, question_count)``."""
    # Lazy imports to avoid loading DB machinery at module import time
    from trias_assessment.catalog import Catalog
    from trias_db.engine import create_tables, dispose_engine
    from trias_db.synchronizer import SqlSynchronizer

    catalog = Catalog.from_yaml(catalog_dir)
    try:
        if create:
            await create_tables()
            logger.info("Tables created")
        await SqlSynchronizer().save_catalog(catalog)
        return len(catalog.themes), catalog.total_questions
    finally:
        await dispose_engine()


def cli() -> None:
    """Console-script entry point: ``trias-seed``."""
    parser = argparse.ArgumentParser(
        prog="trias-seed",
        description="Load the assessment catalog into the database.",
    )
    parser.add_argument(
        "--catalog-dir",
        default=None,
        help="Directory holding themes.yaml and questions.yaml "
             "(default: $TRIAS_CATALOG_DIR or catalog/v1)",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        default=False,
        help="Create missing tables before seeding",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    themes, questions = asyncio.run(
        run_seed(catalog_dir=args.catalog_dir, create=args.create_tables)
    )

    print(f"Seeded {themes} themes, {questions} questions")
    sys.exit(0)

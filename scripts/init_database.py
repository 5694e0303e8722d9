#!/usr/bin/env python3
"""
Initialize the Lending Library database.

This script:
1. Creates all database tables
2. Optionally loads the starter catalog and members
3. Verifies the database is ready for MCP server use

Usage:
    python scripts/init_database.py [--drop-existing] [--sample-data]
        [--extra-members N] [--database-url URL]
"""

import argparse
import logging
import sys

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from lending_library_mcp.database import DatabaseManager, RepositoryException
from lending_library_mcp.database.schema import Base
from lending_library_mcp.database.seed import load_sample_data

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    """Main entry point for database initialization."""
    parser = argparse.ArgumentParser(
        description="Initialize the Lending Library MCP Server database"
    )
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating new ones",
    )
    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Load the starter catalog and member m001 after creating tables",
    )
    parser.add_argument(
        "--extra-members",
        type=int,
        default=0,
        metavar="N",
        help="With --sample-data, also create N generated members",
    )
    parser.add_argument(
        "--database-url",
        help="Override default database URL",
    )

    args = parser.parse_args()

    if args.extra_members < 0:
        parser.error("--extra-members must be >= 0")

    logger.info("Initializing database manager...")
    db_manager = DatabaseManager(args.database_url)

    if not db_manager.verify_connection():
        logger.error("Failed to connect to database")
        sys.exit(1)

    try:
        logger.info("Creating database schema...")
        db_manager.init_database(drop_existing=args.drop_existing)

        if args.sample_data:
            logger.info("Loading sample data...")
            load_sample_data(db_manager, extra_members=args.extra_members)

        tables = set(inspect(db_manager.engine).get_table_names())
        logger.info("Tables: %s", ", ".join(sorted(tables)))

        missing_tables = set(Base.metadata.tables) - tables
        if missing_tables:
            logger.error("Missing expected tables: %s", missing_tables)
            sys.exit(1)

        logger.info("Database initialization complete")

    except (RepositoryException, SQLAlchemyError):
        logger.exception("Database initialization failed")
        sys.exit(1)
    finally:
        db_manager.close()


if __name__ == "__main__":
    main()

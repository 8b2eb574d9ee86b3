#!/usr/bin/env python3
"""
Database initialization script for mintguard
Creates the artwork catalog columns and the index the similarity gate reads
"""

import sys
from pathlib import Path

import psycopg2

# Add the parent directory to Python path so we can import our modules
sys.path.append(str(Path(__file__).parent.parent))

import structlog

from mintguard import config
from mintguard.logging_config import configure_logging

configure_logging(console=True)

logger = structlog.get_logger()

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS artworks (
    id UUID DEFAULT gen_random_uuid() PRIMARY KEY,
    owner UUID,
    title TEXT,
    cover_url TEXT,
    status VARCHAR(32) NOT NULL DEFAULT 'draft',
    dhash64 VARCHAR(16),
    sha256 VARCHAR(64),
    created_at TIMESTAMPTZ DEFAULT NOW()
);

ALTER TABLE artworks ADD COLUMN IF NOT EXISTS dhash64 VARCHAR(16);
ALTER TABLE artworks ADD COLUMN IF NOT EXISTS sha256 VARCHAR(64);

CREATE INDEX IF NOT EXISTS idx_artworks_published_fingerprints
    ON artworks (created_at DESC)
    WHERE status = 'published' AND dhash64 IS NOT NULL;

CREATE INDEX IF NOT EXISTS idx_artworks_sha256 ON artworks (sha256);
"""


def test_database_connection(dsn: str) -> bool:
    """Test database connection before touching the schema."""
    try:
        logger.info("Testing connection to database...")
        conn = psycopg2.connect(dsn, connect_timeout=config.DB_CONNECT_TIMEOUT)
        with conn.cursor() as cursor:
            cursor.execute("SELECT version();")
            pg_version = cursor.fetchone()[0]
        conn.close()
        logger.info("PostgreSQL connected", version=pg_version)
        return True

    except psycopg2.OperationalError as e:
        logger.error("Database connection failed", error=str(e))
        logger.info("Check that PostgreSQL is running and CATALOG_DB_DSN is correct")
        return False


def initialize_database(dsn: str = config.CATALOG_DB_DSN) -> bool:
    """Create or upgrade the catalog schema used by the similarity gate."""
    if not test_database_connection(dsn):
        return False

    conn = None
    try:
        conn = psycopg2.connect(dsn, connect_timeout=config.DB_CONNECT_TIMEOUT)
        conn.autocommit = True
        with conn.cursor() as cursor:
            logger.info("Applying catalog schema")
            cursor.execute(SCHEMA_SQL)

            cursor.execute("""
                SELECT indexname FROM pg_indexes
                WHERE tablename = 'artworks'
            """)
            indexes = [row[0] for row in cursor.fetchall()]

        logger.info("Database initialization completed", indexes=indexes)
        return True

    except psycopg2.Error as e:
        logger.error("Database initialization failed", error=str(e))
        return False
    finally:
        if conn is not None:
            conn.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize the mintguard catalog schema")
    parser.add_argument("--dsn", default=config.CATALOG_DB_DSN,
                       help="PostgreSQL DSN (defaults to CATALOG_DB_DSN)")

    args = parser.parse_args()

    sys.exit(0 if initialize_database(args.dsn) else 1)

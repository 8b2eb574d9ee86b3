import threading
from contextlib import contextmanager
from typing import Dict, List, Optional

import psycopg2
import structlog
from psycopg2 import extras
from psycopg2.pool import ThreadedConnectionPool

from mintguard import config
from mintguard.models.catalog import CatalogEntry
from mintguard.services.errors import CorpusUnavailable

logger = structlog.get_logger()

# Global connection pool, created on first use
_connection_pool = None
_pool_lock = threading.Lock()


def initialize_connection_pool(dsn: str = config.CATALOG_DB_DSN):
    """Initialize the catalog database connection pool."""
    global _connection_pool
    with _pool_lock:
        if _connection_pool is None:
            try:
                _connection_pool = ThreadedConnectionPool(
                    config.DB_MIN_CONNECTIONS,
                    config.DB_MAX_CONNECTIONS,
                    dsn,
                    connect_timeout=config.DB_CONNECT_TIMEOUT,
                )
                logger.info("Catalog connection pool initialized",
                           min_connections=config.DB_MIN_CONNECTIONS,
                           max_connections=config.DB_MAX_CONNECTIONS)
            except Exception as e:
                logger.error("Failed to initialize catalog connection pool", error=str(e))
                raise
    return _connection_pool


def close_connection_pool():
    """Close all pooled connections."""
    global _connection_pool
    with _pool_lock:
        if _connection_pool is not None:
            _connection_pool.closeall()
            _connection_pool = None
            logger.info("Catalog connection pool closed")


@contextmanager
def get_db_connection():
    """Context manager for pooled database connections with automatic cleanup."""
    pool = _connection_pool or initialize_connection_pool()

    conn = None
    try:
        conn = pool.getconn()
        yield conn
    except Exception as e:
        if conn:
            conn.rollback()
        logger.error("Database operation failed", error=str(e))
        raise
    finally:
        if conn:
            pool.putconn(conn)


# Catalog reads
def fetch_published_fingerprints(limit: int) -> List[Dict]:
    """Fetch the newest published artworks that carry a dHash fingerprint."""
    sql = """
    SELECT id, title, owner, cover_url, dhash64
    FROM artworks
    WHERE status = 'published' AND dhash64 IS NOT NULL
    ORDER BY created_at DESC
    LIMIT %s
    """
    with get_db_connection() as conn:
        with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
            cur.execute(sql, (limit,))
            results = cur.fetchall()

    logger.debug("Published fingerprints fetched", results_count=len(results), limit=limit)
    return [dict(row) for row in results]


def fetch_unhashed_artworks(limit: int) -> List[Dict]:
    """Fetch published artworks that still lack a dHash fingerprint."""
    sql = """
    SELECT id, cover_url
    FROM artworks
    WHERE status = 'published' AND dhash64 IS NULL AND cover_url IS NOT NULL
    ORDER BY created_at DESC
    LIMIT %s
    """
    try:
        with get_db_connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(sql, (limit,))
                results = cur.fetchall()

        return [dict(row) for row in results]

    except Exception as e:
        logger.error("Failed to fetch unhashed artworks", limit=limit, error=str(e))
        raise


def update_artwork_hashes(artwork_id: str, dhash64: Optional[str], sha256: Optional[str]) -> None:
    """Store fingerprints for one artwork."""
    sql = """
    UPDATE artworks
    SET dhash64 = %s, sha256 = COALESCE(%s, sha256)
    WHERE id = %s
    """
    try:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (dhash64, sha256, artwork_id))
                conn.commit()

        logger.debug("Artwork hashes updated", artwork_id=artwork_id, dhash64=dhash64)

    except Exception as e:
        logger.error("Failed to update artwork hashes", artwork_id=artwork_id, error=str(e))
        raise


def check_database_connection() -> bool:
    """Check if the catalog database connection is working."""
    try:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                result = cur.fetchone()

        return result[0] == 1

    except Exception as e:
        logger.error("Catalog database connection check failed", error=str(e))
        return False


class CatalogCorpus:
    """Candidate corpus backed by the published artwork catalog."""

    def fetch_candidates(self, limit: int) -> List[CatalogEntry]:
        """
        Return up to ``limit`` published entries with a fingerprint, newest first.

        Raises:
            CorpusUnavailable: if the catalog cannot be queried.
        """
        try:
            rows = fetch_published_fingerprints(limit)
        except psycopg2.Error as e:
            raise CorpusUnavailable(f"Catalog query failed: {e}") from e

        return [CatalogEntry.from_row(row) for row in rows]

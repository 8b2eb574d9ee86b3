#!/usr/bin/env python3
"""
Backfill dHash and SHA-256 fingerprints for published artworks.

Downloads each artwork's cover image and stores its fingerprints so that it
becomes a candidate for the similarity gate. Artworks whose cover cannot be
fetched or decoded are skipped and left for the next run.
"""

import sys
from pathlib import Path

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

sys.path.append(str(Path(__file__).parent.parent))

import structlog

from mintguard.core.database import close_connection_pool, fetch_unhashed_artworks, update_artwork_hashes
from mintguard.core.utils import calculate_content_hash
from mintguard.logging_config import configure_logging
from mintguard.services.errors import DecodeError
from mintguard.services.image_hash import dhash64

configure_logging(console=True)

logger = structlog.get_logger()

DOWNLOAD_TIMEOUT = 30


def create_session() -> requests.Session:
    """HTTP session with retries for flaky gateways."""
    session = requests.Session()
    retry = Retry(total=3, backoff_factor=0.5, status_forcelist=[429, 500, 502, 503, 504])
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def hash_cover(session: requests.Session, cover_url: str):
    """Download a cover image and return ``(dhash64, sha256)``."""
    resp = session.get(cover_url, timeout=DOWNLOAD_TIMEOUT)
    resp.raise_for_status()
    content = resp.content
    return dhash64(content), calculate_content_hash(content)


def backfill(batch_size: int = 100, dry_run: bool = False) -> dict:
    """Fingerprint one batch of unhashed artworks."""
    session = create_session()
    artworks = fetch_unhashed_artworks(batch_size)
    stats = {"candidates": len(artworks), "updated": 0, "skipped": 0}

    for artwork in artworks:
        artwork_id = str(artwork["id"])
        try:
            dhash, sha = hash_cover(session, artwork["cover_url"])
        except requests.RequestException as e:
            logger.warning("Cover download failed", artwork_id=artwork_id, error=str(e))
            stats["skipped"] += 1
            continue
        except DecodeError as e:
            logger.warning("Cover is not a decodable image", artwork_id=artwork_id, error=str(e))
            stats["skipped"] += 1
            continue

        if not dry_run:
            update_artwork_hashes(artwork_id, dhash, sha)
        stats["updated"] += 1
        logger.info("Artwork fingerprinted", artwork_id=artwork_id, dhash64=dhash, dry_run=dry_run)

    logger.info("Backfill batch completed", **stats)
    return stats


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Backfill artwork fingerprints")
    parser.add_argument("--batch-size", type=int, default=100,
                       help="Number of artworks to process")
    parser.add_argument("--dry-run", action="store_true",
                       help="Compute hashes without writing them")

    args = parser.parse_args()

    try:
        backfill(args.batch_size, args.dry_run)
    finally:
        close_connection_pool()

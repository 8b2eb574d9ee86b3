"""
Perceptual image hashing for near-duplicate detection.
Uses a 64-bit difference hash (dHash) compared by Hamming distance.
"""

import io
import string

import numpy as np
import structlog
from PIL import Image

from mintguard.services.errors import DecodeError, MalformedFingerprint

logger = structlog.get_logger()

HASH_SIZE = 8
HASH_BITS = HASH_SIZE * HASH_SIZE
HASH_HEX_LENGTH = HASH_BITS // 4

_HEX_DIGITS = frozenset(string.hexdigits)


def dhash64(image_bytes: bytes) -> str:
    """
    Generate a 64-bit difference hash (dHash) for raw image bytes.

    The image is reduced to a 9x8 luminance grid; each of the 64 bits records
    whether a pixel is brighter than its right-hand neighbour. Bits are packed
    row-major, first bit most significant, and rendered as 16 lowercase hex
    digits.

    Raises:
        DecodeError: if the bytes are not a decodable raster image.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            # Grayscale, then shrink to hash_size + 1 columns x hash_size rows
            gray = image.convert('L')
            gray = gray.resize((HASH_SIZE + 1, HASH_SIZE), Image.Resampling.LANCZOS)
            pixels = np.asarray(gray, dtype=np.int16)
    except Exception as e:
        logger.warning("Failed to decode image for dHash", size=len(image_bytes), error=str(e))
        raise DecodeError(f"Could not decode image: {e}") from e

    # Left pixel brighter than right pixel
    diff = pixels[:, :-1] > pixels[:, 1:]

    value = 0
    for bit in diff.flatten():
        value = (value << 1) | int(bit)

    hash_hex = format(value, f"0{HASH_HEX_LENGTH}x")
    logger.debug("Generated dHash", dhash64=hash_hex)
    return hash_hex


def parse_fingerprint(fingerprint) -> int:
    """Parse a 16-digit hex fingerprint into an unsigned 64-bit integer."""
    if not isinstance(fingerprint, str):
        raise MalformedFingerprint(f"Fingerprint must be a string, got {type(fingerprint).__name__}")

    value = fingerprint.strip()
    if len(value) != HASH_HEX_LENGTH or not _HEX_DIGITS.issuperset(value):
        raise MalformedFingerprint(f"Fingerprint must be {HASH_HEX_LENGTH} hex digits: {fingerprint!r}")

    return int(value, 16)


def hamming_distance(hash1, hash2) -> int:
    """
    Calculate Hamming distance between two 64-bit fingerprints.

    A malformed fingerprint on either side counts as maximally distant (64)
    so that one dirty catalog row cannot abort a scan.
    """
    try:
        xor = parse_fingerprint(hash1) ^ parse_fingerprint(hash2)
    except MalformedFingerprint as e:
        logger.debug("Malformed fingerprint in comparison", error=str(e))
        return HASH_BITS

    return bin(xor).count("1")


def similarity(hash1, hash2) -> float:
    """Similarity score in [0, 1]: 1 - distance / 64."""
    return 1.0 - hamming_distance(hash1, hash2) / HASH_BITS

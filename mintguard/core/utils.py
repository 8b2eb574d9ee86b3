import hashlib

import structlog

logger = structlog.get_logger()

UPLOAD_READ_CHUNK = 1024 * 1024


def calculate_content_hash(data: bytes, algorithm: str = "sha256") -> str:
    """Calculate hash of raw content for exact-duplicate checks."""
    hash_obj = hashlib.new(algorithm)
    hash_obj.update(data)
    return hash_obj.hexdigest()


async def read_upload(upload_file, max_size: int) -> bytes:
    """
    Read an uploaded file into memory, refusing anything above max_size bytes.

    Raises:
        ValueError: if the upload exceeds max_size.
    """
    size = getattr(upload_file, "size", None)
    if size is not None and size > max_size:
        raise ValueError(f"Upload of {size} bytes exceeds limit of {max_size} bytes")

    chunks = []
    total = 0
    while True:
        chunk = await upload_file.read(UPLOAD_READ_CHUNK)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise ValueError(f"Upload exceeds limit of {max_size} bytes")
        chunks.append(chunk)

    content = b"".join(chunks)
    logger.debug("Read upload", filename=getattr(upload_file, "filename", None), size=len(content))
    return content


def is_image_mime_type(content_type) -> bool:
    """True for image/* MIME types."""
    return bool(content_type) and content_type.lower().startswith("image/")

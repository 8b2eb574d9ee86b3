from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import Depends, FastAPI, File, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mintguard import __version__, config
from mintguard.core.database import CatalogCorpus, check_database_connection, close_connection_pool
from mintguard.core.utils import calculate_content_hash, is_image_mime_type, read_upload
from mintguard.logging_config import configure_logging
from mintguard.models.similarity import HashResponse, HealthResponse, MatchOutcome, VerifyResponse
from mintguard.services.errors import DecodeError
from mintguard.services.image_hash import dhash64
from mintguard.services.matcher import SimilarityMatcher

configure_logging()

logger = structlog.get_logger()

# Shared matcher; holds configuration only, no per-request state
matcher = SimilarityMatcher(CatalogCorpus())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting mintguard API",
               threshold=matcher.threshold,
               candidate_limit=matcher.candidate_limit,
               max_results=matcher.max_results,
               budget_seconds=matcher.budget_seconds)

    # The gate must come up even without a catalog; matching degrades to no results
    if await run_in_threadpool(check_database_connection):
        logger.info("Catalog database connection verified")
    else:
        logger.warning("Catalog database unavailable, similarity checks will return no matches")

    yield

    logger.info("Shutting down mintguard API")
    close_connection_pool()


app = FastAPI(
    title="mintguard API",
    description="Near-duplicate image gate for artwork minting",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_matcher() -> SimilarityMatcher:
    return matcher


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Liveness check; catalog reachability is reported but never fails the check."""
    db_healthy = await run_in_threadpool(check_database_connection)
    return HealthResponse(
        ok=True,
        version=__version__,
        components={"database": "healthy" if db_healthy else "unhealthy"},
    )


@app.post("/api/hashes", response_model=HashResponse, response_model_exclude_unset=True)
async def compute_hashes(file: Optional[UploadFile] = File(None)):
    """
    Compute the dHash and SHA-256 of an uploaded file.

    The SHA-256 is computed for any payload; the dHash only for image uploads
    that decode. Problems are reported in ``note``, never as an error status.
    """
    if file is None:
        return HashResponse(dhash64=None, sha256=None, note="no file")

    try:
        try:
            content = await read_upload(file, config.MAX_FILE_SIZE)
        except ValueError as e:
            logger.warning("Rejected oversized upload", filename=file.filename, error=str(e))
            return HashResponse(dhash64=None, sha256=None, note="file too large")

        sha = calculate_content_hash(content)

        dhash = None
        if is_image_mime_type(file.content_type):
            try:
                dhash = await run_in_threadpool(dhash64, content)
            except DecodeError as e:
                logger.warning("dHash failed", filename=file.filename, error=str(e))

        logger.info("Computed upload hashes",
                   filename=file.filename, content_type=file.content_type,
                   size=len(content), dhash64=dhash, sha256=sha)
        return HashResponse(dhash64=dhash, sha256=sha)

    except Exception as e:
        logger.error("Unexpected error computing hashes", filename=file.filename, error=str(e), exc_info=True)
        return HashResponse(dhash64=None, sha256=None, note="unexpected error")


@app.post("/api/verify", response_model=VerifyResponse)
async def verify_similarity(
    file: Optional[UploadFile] = File(None),
    image: Optional[UploadFile] = File(None),
    similarity_matcher: SimilarityMatcher = Depends(get_matcher),
):
    """
    Check an uploaded image against recently published artwork.

    Accepts the upload as ``file`` or ``image``. Always answers 200; a missing
    or undecodable image, an unreachable catalog and a blown time budget all
    come back as ``query: null`` and/or empty match lists.
    """
    upload = file or image
    if upload is None:
        return VerifyResponse.from_outcome(MatchOutcome.empty())

    try:
        content = await read_upload(upload, config.MAX_FILE_SIZE)
    except ValueError as e:
        logger.warning("Rejected oversized upload", filename=upload.filename, error=str(e))
        return VerifyResponse.from_outcome(MatchOutcome.empty())
    except Exception as e:
        logger.error("Failed to read upload", filename=upload.filename, error=str(e), exc_info=True)
        return VerifyResponse.from_outcome(MatchOutcome.empty())

    outcome = await similarity_matcher.find_matches(content)

    logger.info("Verify completed",
               filename=upload.filename, query=outcome.query, matches_found=len(outcome.matches))
    return VerifyResponse.from_outcome(outcome)


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error("Unhandled exception",
                url=str(request.url), method=request.method, error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_server_error", "message": "An unexpected error occurred"}
    )


def main():
    uvicorn.run(
        "mintguard.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=config.DEBUG,
        log_config=None,  # We handle logging with structlog
    )


if __name__ == "__main__":
    main()

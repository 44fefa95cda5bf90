import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import lru_cache
from urllib.parse import urlparse

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tales_analyzer import __version__
from tales_analyzer.config import get_settings
from tales_analyzer.errors import NoContentError
from tales_analyzer.logging_config import configure_logging
from tales_analyzer.models import ReviewRequest
from tales_analyzer.pipeline import PipelineOrchestrator

logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(f"Server started (port {settings.port}, version {__version__})")
    yield


app = FastAPI(title="Tales Analyzer API", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache()
def get_pipeline() -> PipelineOrchestrator:
    """One pipeline (and so one cache) per process."""
    return PipelineOrchestrator(get_settings())


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


# ---------------------------------------------------------------------------
# Middleware / error handlers
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = uuid.uuid4().hex[:7]
    start = time.perf_counter()
    logger.info(f"[{request_id}] {request.method} {request.url.path}")
    response = await call_next(request)
    duration = int((time.perf_counter() - start) * 1000)
    logger.info(f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} ({duration}ms)")
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error(400, "Invalid request body")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "Tales Analyzer API is running",
        "version": __version__,
        "endpoints": {"health": "/health", "portfolioReview": "/portfolio-review"},
    }


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
    }


@app.post("/portfolio-review")
async def portfolio_review(request: ReviewRequest, pipeline: PipelineOrchestrator = Depends(get_pipeline)):
    """Crawl, analyze and (optionally) enrich a portfolio URL."""
    url = (request.url or "").strip()
    if not url:
        logger.error("URL validation failed: URL is required")
        return _error(400, "URL is required")
    if not _is_valid_url(url):
        logger.error(f"URL validation failed: invalid URL format ({url})")
        return _error(400, "Invalid URL format")

    try:
        result = await pipeline.review(
            url,
            use_cache=request.use_cache,
            include_references=request.include_references,
        )
    except NoContentError as e:
        return _error(404, str(e))
    except Exception as e:
        logger.error(f"Error processing portfolio {url}: {e}")
        return _error(500, str(e) or "Unknown error occurred")

    body = {
        "success": True,
        "data": result.data.model_dump(mode="json"),
        "fromCache": result.from_cache,
    }
    if result.from_cache:
        body["cacheAge"] = result.cache_age_seconds
        body["fresh"] = result.fresh
    return body

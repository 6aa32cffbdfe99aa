"""FastAPI application wiring the discovery pipeline."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, settings
from .discovery import discover_products
from .errors import DiscoveryError, InvalidInputError, RateLimitError
from .keepa_client import KeepaClient, get_client
from .models import EXPLANATION, ErrorResponse, SearchRequest, SearchResponse

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())
SEARCH_EXAMPLE = "/api/search?keyword=tablecraft"

# uvicorn installs its own handlers; ``force=True`` puts ours back in charge.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

app = FastAPI(title="Keepa Brand Discovery")
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


def get_settings() -> Settings:
    return settings


def get_keepa_client() -> KeepaClient:
    return get_client()


@app.on_event("startup")
async def startup_event() -> None:
    # Never log the key itself.
    logger.info(
        "Environment check - KEEPA_KEY configured: %s (length %s)",
        settings.keepa_key_configured,
        len(settings.keepa_key),
    )


@app.exception_handler(DiscoveryError)
async def discovery_error_handler(request: Request, exc: DiscoveryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Discovery failed path=%s error=%s", request.url.path, exc)
    else:
        logger.warning("Discovery rejected path=%s error=%s", request.url.path, exc)
    body = ErrorResponse(
        error=exc.label,
        message=str(exc),
        hint=exc.hint,
        keyword=getattr(request.state, "keyword", None),
    )
    headers = {}
    if isinstance(exc, InvalidInputError):
        body.example = SEARCH_EXAMPLE
    if isinstance(exc, RateLimitError) and exc.retry_after_seconds is not None:
        body.retry_after_seconds = exc.retry_after_seconds
        headers["Retry-After"] = str(max(1, round(exc.retry_after_seconds)))
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers or None,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = ErrorResponse(
        error="Invalid request",
        message="Request body must be JSON like {\"keyword\": \"tablecraft\"}",
        example=SEARCH_EXAMPLE,
    )
    return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))


@app.get("/")
async def root() -> dict:
    return {
        "message": "Keepa API Demo Server",
        "endpoints": {
            "GET /api/search?keyword=tablecraft": "Search products by keyword",
            "POST /api/search": "Search products by keyword (body: { keyword: 'tablecraft' })",
            "GET /health": "Health check",
        },
        "howItWorks": {
            "step1": "Call Keepa's /query API with keyword to discover ASINs",
            "step2": "Call /product API with ASINs to fetch product details (brand, manufacturer)",
            "step3": "ASIN is the join key between the two API calls",
        },
    }


@app.get("/health")
async def health(cfg: Settings = Depends(get_settings)) -> dict:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "keepa_key_configured": cfg.keepa_key_configured,
    }


async def _run_search(request: Request, keyword: str | None, client: KeepaClient, cfg: Settings) -> SearchResponse:
    if keyword is None or not keyword.strip():
        raise InvalidInputError("Missing keyword parameter")
    request.state.keyword = keyword
    logger.info("API request: searching for %r", keyword)

    products = await discover_products(client, keyword, batch_size=cfg.batch_size)
    if not products:
        return SearchResponse(
            keyword=keyword,
            count=0,
            products=[],
            message="No results found for this keyword",
            explanation={
                "step1": EXPLANATION["step1"],
                "step2": "No ASINs found for the given keyword",
                "step3": "Try a different keyword",
            },
        )
    return SearchResponse(keyword=keyword, count=len(products), products=products)


@app.get("/api/search", response_model=SearchResponse, response_model_exclude_none=True)
async def search_get(
    request: Request,
    keyword: str | None = Query(None, description="Search keyword"),
    client: KeepaClient = Depends(get_keepa_client),
    cfg: Settings = Depends(get_settings),
) -> SearchResponse:
    return await _run_search(request, keyword, client, cfg)


@app.post("/api/search", response_model=SearchResponse, response_model_exclude_none=True)
async def search_post(
    request: Request,
    payload: SearchRequest | None = Body(None),
    client: KeepaClient = Depends(get_keepa_client),
    cfg: Settings = Depends(get_settings),
) -> SearchResponse:
    return await _run_search(request, payload.keyword if payload else None, client, cfg)

"""Keyword discovery and ASIN hydration on top of the Keepa API.

Two sequential calls, joined on the ASIN:

    1) ``/query`` turns the keyword into a product finder selection and returns
       the matching ASINs (provider order).
    2) ``/product`` hydrates the first ``batch_size`` of those ASINs with title,
       brand and manufacturer.

Failures are never turned into an empty result here: the caller receives the
classified error and decides on the HTTP status.
"""
from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Dict, List, Optional, Protocol, Sequence

from .config import DEFAULT_BATCH_SIZE, PLACEHOLDER_KEYS, QUERY_PAGE_SIZE
from .errors import ConfigurationError, InvalidInputError
from .models import NOT_AVAILABLE, EnrichedProduct, KeepaProduct, KeepaProductResponse, KeepaQueryResponse

logger = logging.getLogger(__name__)


class CatalogClient(Protocol):
    api_key: Optional[str]

    def query(self, selection: dict) -> KeepaQueryResponse: ...

    def product(self, asins: Sequence[str]) -> KeepaProductResponse: ...


def build_selection(keyword: str) -> dict:
    """Product finder selection for a keyword; the keyword is sent as-is."""
    return {"title": keyword, "page": 0, "perPage": QUERY_PAGE_SIZE}


def normalize_product(record: KeepaProduct) -> EnrichedProduct:
    if not record.asin:
        raise ValueError("Keepa product record has no ASIN")
    return EnrichedProduct(
        asin=record.asin,
        title=record.title or NOT_AVAILABLE,
        brand=record.brand or record.manufacturer or NOT_AVAILABLE,
        manufacturer=record.manufacturer or record.brand or NOT_AVAILABLE,
    )


def normalize_products(response: KeepaProductResponse, requested: Sequence[str]) -> List[EnrichedProduct]:
    """Join detail records back onto the requested ASINs, in request order."""
    by_asin: Dict[str, KeepaProduct] = {}
    for key, record in response.products.items():
        if not record.asin:
            continue
        if record.asin != key:
            logger.warning("Dropping Keepa record keyed %r with mismatched asin %r", key, record.asin)
            continue
        by_asin[record.asin] = record

    results: List[EnrichedProduct] = []
    for asin in dict.fromkeys(requested):
        record = by_asin.get(asin)
        if record is not None:
            results.append(normalize_product(record))
    return results


def _check_credential(api_key: Optional[str]) -> None:
    key = (api_key or "").strip()
    if not key:
        raise ConfigurationError("KEEPA_KEY is not set")
    if key in PLACEHOLDER_KEYS:
        raise ConfigurationError("KEEPA_KEY is still the placeholder value")


async def discover_products(
    client: CatalogClient,
    keyword: str,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> List[EnrichedProduct]:
    if not keyword or not keyword.strip():
        raise InvalidInputError("Keyword must not be empty")
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")
    _check_credential(client.api_key)

    t0 = perf_counter()
    found = await asyncio.to_thread(client.query, build_selection(keyword))
    asins = found.asinList
    if not asins:
        logger.info("discover q=%r asins=0", keyword)
        return []

    batch = asins[:batch_size]
    logger.info("discover q=%r asins=%s hydrating=%s", keyword, len(asins), ",".join(batch))

    t1 = perf_counter()
    details = await asyncio.to_thread(client.product, batch)
    t2 = perf_counter()

    results = normalize_products(details, batch)
    logger.info(
        "timing: total=%.2fms query=%.2fms product=%.2fms q=%r results=%s",
        (t2 - t0) * 1000,
        (t1 - t0) * 1000,
        (t2 - t1) * 1000,
        keyword,
        len(results),
    )
    return results

"""Pydantic models for Keepa payloads and the public API."""
from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

EXPLANATION = {
    "step1": "Called Keepa's /query API with keyword to discover ASINs",
    "step2": "Called /product API with ASINs to fetch product details (brand, manufacturer)",
    "step3": "ASIN is the join key between the two API calls",
}


# --- Keepa responses ---------------------------------------------------------


class KeepaQueryResponse(BaseModel):
    asinList: list[str] = Field(default_factory=list)

    @field_validator("asinList", mode="before")
    @classmethod
    def _coerce_asins(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, str) and item]


class KeepaProduct(BaseModel):
    asin: str | None = None
    title: str | None = None
    brand: str | None = None
    manufacturer: str | None = None

    @field_validator("asin", "title", "brand", "manufacturer", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> str | None:
        # Keepa sends "" or null for unknown attributes.
        if isinstance(value, str) and value:
            return value
        return None


class KeepaProductResponse(BaseModel):
    products: dict[str, KeepaProduct] = Field(default_factory=dict)

    @field_validator("products", mode="before")
    @classmethod
    def _coerce_products(cls, value: Any) -> dict[str, KeepaProduct]:
        if isinstance(value, dict):
            items = list(value.items())
        elif isinstance(value, list):
            items = [
                (raw.get("asin"), raw)
                for raw in value
                if isinstance(raw, dict) and isinstance(raw.get("asin"), str)
            ]
        else:
            return {}

        products: dict[str, KeepaProduct] = {}
        for key, raw in items:
            if not isinstance(raw, dict):
                continue
            try:
                products[str(key)] = KeepaProduct.model_validate(raw)
            except ValidationError as exc:
                logger.warning("Skipping malformed Keepa product %r: %s", key, exc)
        return products


# --- Public API --------------------------------------------------------------


class EnrichedProduct(BaseModel):
    asin: str
    title: str
    brand: str
    manufacturer: str


class SearchRequest(BaseModel):
    keyword: str | None = Field(None, description="Search keyword, e.g. 'tablecraft'")


class SearchResponse(BaseModel):
    success: bool = True
    keyword: str
    count: int
    products: list[EnrichedProduct]
    message: str | None = None
    explanation: dict[str, str] = Field(default_factory=lambda: dict(EXPLANATION))


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    hint: str | None = None
    keyword: str | None = None
    example: str | None = None
    retry_after_seconds: float | None = None

"""Keepa HTTP client.

The client is synchronous and makes exactly one attempt per call; the
discovery pipeline wraps calls via ``asyncio.to_thread``. Every failure leaves
this module as one of the classified errors from :mod:`brand_discovery.errors`.
"""
from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from typing import Any, NoReturn, Optional, Sequence

import requests

from .config import DEFAULT_BASE_URL, DEFAULT_DOMAIN_ID, Settings, settings as default_settings
from .errors import AuthError, RateLimitError, UpstreamError
from .models import KeepaProductResponse, KeepaQueryResponse

logger = logging.getLogger(__name__)

AUTH_STATUS_CODES = {401, 403}
RATE_LIMIT_STATUS = 429

_KEY_PARAM_RE = re.compile(r"([?&]key=)[^&\s\"]*")


class RedactKeyFilter(logging.Filter):
    """Masks the ``key`` query parameter in request lines logged by urllib3."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _KEY_PARAM_RE.sub(r"\1***", message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


# urllib3 logs the full request URL at DEBUG, query string included.
logging.getLogger("urllib3.connectionpool").addFilter(RedactKeyFilter())


def _provider_message(payload: Any) -> Optional[str]:
    """Pull Keepa's own error text out of a decoded error body."""
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
        return json.dumps(error)
    if isinstance(error, str) and error:
        return error
    return None


def _refill_hint(payload: Any, response: requests.Response) -> Optional[float]:
    if isinstance(payload, dict):
        refill_ms = payload.get("refillIn")
        if isinstance(refill_ms, (int, float)) and refill_ms >= 0:
            return refill_ms / 1000.0
    retry_after = response.headers.get("Retry-After")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            return None
    return None


def _decode_body(response: requests.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return None


class KeepaClient:
    """Thin wrapper around the Keepa ``/query`` and ``/product`` endpoints."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        domain_id: int = DEFAULT_DOMAIN_ID,
        timeout_seconds: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.domain_id = domain_id
        self.timeout_seconds = timeout_seconds
        # No shared Session by default: each call gets its own connection pool.
        self._session = session

    @classmethod
    def from_settings(cls, cfg: Settings, *, session: requests.Session | None = None) -> "KeepaClient":
        return cls(
            cfg.keepa_key,
            base_url=cfg.keepa_base_url,
            domain_id=cfg.domain_id,
            timeout_seconds=cfg.request_timeout_seconds,
            session=session,
        )

    def query(self, selection: dict) -> KeepaQueryResponse:
        """Run a product finder selection and return the matching ASINs."""
        payload = self._get_json("query", {"selection": json.dumps(selection)})
        return KeepaQueryResponse.model_validate(payload if isinstance(payload, dict) else {})

    def product(self, asins: Sequence[str]) -> KeepaProductResponse:
        """Fetch detail records for a batch of ASINs in a single request."""
        payload = self._get_json("product", {"asin": ",".join(asins)})
        return KeepaProductResponse.model_validate(payload if isinstance(payload, dict) else {})

    def _get_json(self, endpoint: str, params: dict[str, Any]) -> Any:
        url = f"{self.base_url}/{endpoint}"
        request_params = {"key": self.api_key, "domain": self.domain_id, **params}
        logger.debug("Keepa GET /%s params=%s", endpoint, params)

        try:
            http = self._session if self._session is not None else requests
            response = http.get(url, params=request_params, timeout=self.timeout_seconds)
        except requests.Timeout as exc:
            logger.error("Keepa /%s timed out after %.1fs", endpoint, self.timeout_seconds)
            raise UpstreamError(
                f"Keepa API error: /{endpoint} timed out after {self.timeout_seconds:g}s"
            ) from exc
        except requests.RequestException as exc:
            logger.error("Keepa /%s transport failure: %s", endpoint, exc)
            raise UpstreamError(f"Keepa API error: {exc}") from exc

        if response.status_code >= 400:
            self._raise_for_status(endpoint, response)

        payload = _decode_body(response)
        if payload is None:
            logger.error("Keepa /%s returned a non-JSON body (status=%s)", endpoint, response.status_code)
            raise UpstreamError(
                f"Keepa API error: /{endpoint} response was not valid JSON",
                upstream_status=response.status_code,
            )
        return payload

    def _raise_for_status(self, endpoint: str, response: requests.Response) -> NoReturn:
        status = response.status_code
        payload = _decode_body(response)
        detail = _provider_message(payload)
        logger.warning("Keepa /%s failed status=%s error=%s", endpoint, status, detail or response.reason)

        if status in AUTH_STATUS_CODES:
            raise AuthError("Invalid Keepa API key", detail=detail)
        if status == RATE_LIMIT_STATUS:
            raise RateLimitError(
                f"Keepa API rate limit exceeded: {detail or 'too many requests'}",
                detail=detail,
                retry_after_seconds=_refill_hint(payload, response),
            )
        fallback = f"{status} {response.reason or 'error'} for /{endpoint}"
        raise UpstreamError(
            f"Keepa API error: {detail or fallback}",
            detail=detail,
            upstream_status=status,
        )


@lru_cache(maxsize=1)
def get_client(cfg: Settings | None = None) -> KeepaClient:
    cfg = cfg or default_settings
    logger.info("Using Keepa API at %s (domain=%s)", cfg.keepa_base_url, cfg.domain_id)
    return KeepaClient.from_settings(cfg)

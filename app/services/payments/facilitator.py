"""
x402 facilitator client.
Asks the configured facilitator whether a payment transaction covers (wallet, tokenId).
Any failure degrades to "not paid" so the caller can fall through to on-chain checks.
"""
import logging
import time

import httpx
import pybreaker

from app.core.config import Settings
from app.services.circuit_breaker import get_circuit_breaker
from app.utils.metrics import (
    facilitator_requests_total,
    facilitator_request_duration_seconds,
)


logger = logging.getLogger(__name__)


class FacilitatorError(Exception):
    """Facilitator answer that cannot be read as a verdict (non-2xx, bad JSON)."""


class FacilitatorClient:
    """Sync facilitator client (bearer auth, bounded by a timeout, no retries)."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
        breaker: pybreaker.CircuitBreaker | None = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._breaker = breaker

    @classmethod
    def from_settings(cls, settings: Settings) -> "FacilitatorClient":
        return cls(
            api_url=settings.x402_api,
            api_key=settings.x402_api_key,
            timeout=settings.facilitator_timeout_seconds,
            breaker=get_circuit_breaker("facilitator"),
        )

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def is_available(self) -> bool:
        return bool(self.api_url and self.api_key)

    def _post(self, payload: dict) -> httpx.Response:
        """One facilitator call; only transport errors and 5xx count against the breaker."""
        resp = self.client.post(
            self.api_url,
            json=payload,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
            timeout=self.timeout,
        )
        if resp.status_code >= 500:
            raise FacilitatorError(f"facilitator returned HTTP {resp.status_code}")
        return resp

    @staticmethod
    def _read_body(resp: httpx.Response) -> dict:
        if resp.status_code >= 400:
            raise FacilitatorError(f"facilitator rejected the request: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise FacilitatorError("facilitator returned malformed JSON") from e
        if not isinstance(data, dict):
            raise FacilitatorError("facilitator returned a non-object JSON body")
        return data

    def check_payment(self, tx_hash: str, wallet: str, token_id: int) -> bool:
        """True only if the facilitator explicitly answers {"success": true}."""
        if not self.is_available():
            logger.error("facilitator_not_configured")
            facilitator_requests_total.labels(status="not_configured").inc()
            return False

        payload = {"txHash": tx_hash, "wallet": wallet, "tokenId": token_id}
        start = time.time()
        try:
            if self._breaker is not None:
                resp = self._breaker.call(self._post, payload)
            else:
                resp = self._post(payload)
            data = self._read_body(resp)
        except pybreaker.CircuitBreakerError:
            facilitator_requests_total.labels(status="circuit_open").inc()
            logger.warning("facilitator_circuit_open", extra={"tx_hash": tx_hash})
            return False
        except (httpx.HTTPError, FacilitatorError) as e:
            facilitator_requests_total.labels(status="error").inc()
            logger.warning(
                "facilitator_check_failed",
                extra={"tx_hash": tx_hash, "error": str(e) or type(e).__name__},
            )
            return False
        finally:
            facilitator_request_duration_seconds.observe(time.time() - start)

        ok = data.get("success") is True
        facilitator_requests_total.labels(status="success" if ok else "declined").inc()
        return ok

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

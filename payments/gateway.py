import os
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from dotenv import load_dotenv

from utils.circuit_breaker import CircuitBreaker
from utils.errors import UpstreamError
from .contracts import GatewayVerification, InitializeResult

load_dotenv()

logger = logging.getLogger("payments.gateway")

PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY")
PAYSTACK_BASE_URL = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co")
PAYSTACK_TIMEOUT_SECONDS = float(os.getenv("PAYSTACK_TIMEOUT_SECONDS", "15"))
PAYSTACK_BREAKER_COOLDOWN_SECONDS = float(os.getenv("PAYSTACK_BREAKER_COOLDOWN_SECONDS", "60"))


class PaystackClient:
    """
    Thin synchronous client for the two Paystack endpoints we use.

    Every failure (network error, timeout, HTTP error, malformed body, open
    circuit) surfaces as UpstreamError. Nothing is retried here.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.secret_key = secret_key if secret_key is not None else PAYSTACK_SECRET_KEY
        self.base_url = (base_url or PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else PAYSTACK_TIMEOUT_SECONDS
        self.breaker = breaker or CircuitBreaker("paystack", PAYSTACK_BREAKER_COOLDOWN_SECONDS)
        self._transport = transport

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        failure_message: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not self.secret_key:
            logger.error("PAYSTACK_SECRET_KEY is not configured")
            raise UpstreamError(failure_message, detail={"reason": "gateway not configured"})

        if self.breaker.is_open:
            logger.warning("Paystack circuit open, failing fast (%.0fs left)", self.breaker.remaining_seconds())
            raise UpstreamError(failure_message, detail={"reason": "circuit open"})

        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.request(method, f"{self.base_url}{path}", json=json, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("Paystack %s %s timed out after %ss: %s", method, path, self.timeout, e)
            raise UpstreamError(failure_message, detail={"reason": "timeout"})
        except httpx.HTTPError as e:
            logger.error("Paystack %s %s failed: %s", method, path, e)
            raise UpstreamError(failure_message, detail={"reason": "network error"})

        if resp.status_code == 429:
            self.breaker.trip()
            logger.error("Paystack rate limited %s %s", method, path)
            raise UpstreamError(failure_message, detail={"reason": "rate limited"})

        if resp.status_code >= 400:
            logger.error("Paystack %s %s returned %s: %s", method, path, resp.status_code, resp.text)
            raise UpstreamError(failure_message, detail={"reason": "http error", "status_code": resp.status_code})

        try:
            body = resp.json()
        except ValueError:
            logger.error("Paystack %s %s returned a non-JSON body", method, path)
            raise UpstreamError(failure_message, detail={"reason": "malformed response"})

        if not body.get("status") or not isinstance(body.get("data"), dict):
            logger.error("Paystack %s %s reported failure: %s", method, path, body.get("message"))
            raise UpstreamError(failure_message, detail={"reason": "gateway failure", "message": body.get("message")})

        return body["data"]

    def verify_transaction(self, reference: str) -> GatewayVerification:
        data = self._request("GET", f"/transaction/verify/{quote(reference, safe='')}")
        status = str(data.get("status") or "")
        try:
            amount = int(data.get("amount"))
        except (TypeError, ValueError):
            logger.error("Paystack verify for %s had no usable amount: %r", reference, data.get("amount"))
            raise UpstreamError(detail={"reason": "malformed response"})

        return GatewayVerification(
            success=status == "success",
            status=status,
            amount_minor_units=amount,
            reference=data.get("reference") or reference,
            currency=data.get("currency"),
            paid_at=data.get("paid_at"),
        )

    def initialize_transaction(self, payload: Dict[str, Any]) -> InitializeResult:
        data = self._request(
            "POST", "/transaction/initialize", json=payload, failure_message="Payment initialization failed"
        )
        if not data.get("authorization_url"):
            logger.error("Paystack initialize returned no authorization_url: %s", data)
            raise UpstreamError("Payment initialization failed", detail={"reason": "malformed response"})
        return InitializeResult(
            authorization_url=data["authorization_url"],
            access_code=data.get("access_code"),
            reference=data.get("reference") or payload.get("reference"),
        )

# app/services/payment_gateway.py
"""
Payment gateway capability.

One interface, two implementations selected by settings.PAYMENT_GATEWAY:
- MockPaymentGateway: deterministic test double, no network
- RazorpayGateway: real order creation over the Razorpay REST API

Callback signatures are hex HMAC-SHA256 over "<order_ref>|<txn_ref>" keyed
with the shared webhook secret.
"""

import hashlib
import hmac
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Tuple

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config import settings

logger = logging.getLogger(__name__)


def compute_signature(secret: str, order_ref: str, txn_ref: str) -> str:
    message = f"{order_ref}|{txn_ref}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class PaymentGatewayError(Exception):
    """Outbound gateway call failed."""


class PaymentGateway(ABC):
    """What the booking engine needs from a payment provider."""

    def __init__(self, webhook_secret: str) -> None:
        self._webhook_secret = webhook_secret

    @abstractmethod
    def create_order(self, amount: int, currency: str, reference: str) -> str:
        """Open an order for amount (minor units) and return the gateway order ref."""

    def verify_signature(self, order_ref: str, txn_ref: str, signature: str) -> bool:
        if not signature:
            return False
        expected = compute_signature(self._webhook_secret, order_ref, txn_ref)
        return hmac.compare_digest(expected, signature)


class MockPaymentGateway(PaymentGateway):
    """
    Deterministic gateway for tests and local development.

    Order refs are sequential per instance; simulate_callback produces the
    same (txn_ref, signature) pair for the same order every time.
    """

    def __init__(self, webhook_secret: str) -> None:
        super().__init__(webhook_secret)
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self.orders = {}

    def create_order(self, amount: int, currency: str, reference: str) -> str:
        with self._lock:
            order_ref = f"order_mock_{reference}_{next(self._counter)}"
            self.orders[order_ref] = {"amount": amount, "currency": currency, "reference": reference}
        logger.info("Mock order %s created for %s %s", order_ref, amount, currency)
        return order_ref

    def simulate_callback(self, order_ref: str) -> Tuple[str, str]:
        txn_ref = "pay_mock_" + hashlib.sha256(order_ref.encode("utf-8")).hexdigest()[:14]
        return txn_ref, compute_signature(self._webhook_secret, order_ref, txn_ref)


class RazorpayGateway(PaymentGateway):
    """Razorpay Orders API adapter."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_url: str = "https://api.razorpay.com",
        timeout: float = 10.0,
    ) -> None:
        # Razorpay signs callbacks with the API key secret
        super().__init__(key_secret)
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    def _post_order(self, payload: dict) -> dict:
        with httpx.Client(timeout=self.timeout) as client:
            response = client.post(
                f"{self.api_url}/v1/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
            )
            response.raise_for_status()
            return response.json()

    def create_order(self, amount: int, currency: str, reference: str) -> str:
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": f"receipt_{reference}",
            "notes": {"booking_id": reference},
        }
        try:
            order = self._post_order(payload)
        except httpx.HTTPError as exc:
            logger.error("Razorpay order creation failed for %s: %s", reference, exc)
            raise PaymentGatewayError(f"Order creation failed: {exc}") from exc
        logger.info("Razorpay order %s created for booking %s", order.get("id"), reference)
        return order["id"]


def build_payment_gateway(gateway_name: str) -> PaymentGateway:
    name = (gateway_name or "mock").strip().lower()
    if name == "mock":
        return MockPaymentGateway(settings.PAYMENT_WEBHOOK_SECRET)
    if name == "razorpay":
        if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
            raise RuntimeError("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET must be set")
        return RazorpayGateway(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            api_url=settings.RAZORPAY_API_URL,
            timeout=settings.PAYMENT_HTTP_TIMEOUT_SECONDS,
        )
    raise RuntimeError(f"Unknown PAYMENT_GATEWAY: {gateway_name!r}")


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    """Configured gateway; also usable as a FastAPI dependency."""
    return build_payment_gateway(settings.PAYMENT_GATEWAY)

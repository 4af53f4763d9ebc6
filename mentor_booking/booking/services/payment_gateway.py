"""
Razorpay REST client: order creation plus the two HMAC verification primitives
"""
import hashlib
import hmac
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mentor_booking.core.config import (
    GATEWAY_RETRY_ATTEMPTS,
    GATEWAY_TIMEOUT_SECONDS,
    RAZORPAY_API_URL,
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    RAZORPAY_WEBHOOK_SECRET,
)
from mentor_booking.core.exceptions import ConfigurationError, ExternalServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "razorpay"


def to_minor_units(amount) -> int:
    """Rupees to paise (or any two-decimal currency)"""
    return int((Decimal(str(amount)) * 100).to_integral_value())


def hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def signatures_match(expected: str, given: Optional[str]) -> bool:
    """Constant-time compare on UTF-8 bytes; str compare_digest rejects non-ASCII input"""
    return hmac.compare_digest(
        expected.encode("utf-8"), (given or "").encode("utf-8", "surrogateescape")
    )


class RazorpayGateway:
    """
    Thin async client over the Razorpay orders API.

    Transport failures (timeouts, refused connections) are retried with
    exponential backoff; HTTP error responses are not.
    """

    def __init__(
        self,
        key_id: str = RAZORPAY_KEY_ID,
        key_secret: str = RAZORPAY_KEY_SECRET,
        webhook_secret: str = RAZORPAY_WEBHOOK_SECRET,
        base_url: str = RAZORPAY_API_URL,
        timeout: float = GATEWAY_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def create_order(self, amount, currency: str, receipt: str) -> Dict[str, Any]:
        """
        Mint an auto-captured order.

        Args:
            amount: Major units (e.g. rupees); sent to the gateway in minor units
            currency: ISO currency code
            receipt: Our session id, echoed back in webhook notes

        Returns:
            The order as returned by the gateway (``id``, ``amount``, ...)
        """
        if not self.key_id or not self.key_secret:
            raise ConfigurationError("RAZORPAY_KEY_ID", "Payment gateway credentials are not set")

        payload = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "receipt": receipt,
            "notes": {"receipt": receipt},
            "payment_capture": 1,
        }

        try:
            response = await self._post("/orders", payload)
        except httpx.HTTPError as e:
            logger.error(f"Razorpay order creation failed: {str(e)}")
            raise ExternalServiceError(SERVICE_NAME, "Payment gateway is unreachable")

        if response.status_code >= 400:
            logger.error(
                f"Razorpay rejected order: {response.status_code} {response.text}",
                extra={"receipt": receipt},
            )
            raise ExternalServiceError(SERVICE_NAME, "Payment gateway rejected the order")

        order = response.json()
        logger.info(
            f"Razorpay order created: {order.get('id')}",
            extra={"receipt": receipt, "amount": payload["amount"]},
        )
        return order

    @retry(
        stop=stop_after_attempt(GATEWAY_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            return await client.post(path, json=payload)

    def verify_payment(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Checkout callback signature: HMAC-SHA256("order_id|payment_id")"""
        if not self.key_secret:
            raise ConfigurationError("RAZORPAY_KEY_SECRET")
        expected = hmac_sha256_hex(self.key_secret, f"{order_id}|{payment_id}".encode())
        return signatures_match(expected, signature)

    def verify_webhook_signature(self, raw_body: bytes, signature: str) -> bool:
        """Webhook signature: HMAC-SHA256 of the raw request body"""
        if not self.webhook_secret:
            raise ConfigurationError("RAZORPAY_WEBHOOK_SECRET", "Webhook secret is not set")
        expected = hmac_sha256_hex(self.webhook_secret, raw_body)
        return signatures_match(expected, signature)

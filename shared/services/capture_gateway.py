"""
Razorpay checkout gateway: server-side orders and capture signature checks
"""
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import httpx

from ..config.settings import settings
from ..errors import GatewayError

logger = logging.getLogger(__name__)


def to_minor_units(amount: int) -> int:
    """Razorpay expects amounts in paise"""
    return amount * 100


class RazorpayGateway:
    def __init__(self, key_id: Optional[str] = None, key_secret: Optional[str] = None,
                 api_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.key_id = key_id if key_id is not None else settings.razorpay_key_id
        self.key_secret = key_secret if key_secret is not None else settings.razorpay_key_secret
        self.api_url = (api_url or settings.razorpay_api_url).rstrip("/")
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    async def create_order(self, amount: int, currency: str, receipt: str,
                           notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Create an order for ``amount`` whole units; returns the gateway's order body"""
        if not self.configured:
            raise GatewayError("Razorpay keys are not configured")

        payload = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }

        try:
            if self._client is not None:
                response = await self._post_order(self._client, payload)
            else:
                async with httpx.AsyncClient(timeout=30) as client:
                    response = await self._post_order(client, payload)
        except httpx.TimeoutException as e:
            logger.error(f"Timeout creating Razorpay order for receipt {receipt}")
            raise GatewayError("Timed out creating payment order", context={"receipt": receipt}) from e
        except httpx.HTTPError as e:
            logger.error(f"Error creating Razorpay order for receipt {receipt}: {e}")
            raise GatewayError("Could not reach payment gateway", context={"receipt": receipt}) from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.status_code >= 400:
            error_msg = data.get("error", {}).get("description", f"HTTP {response.status_code}")
            logger.error(f"Razorpay error for receipt {receipt}: {error_msg}")
            raise GatewayError(f"Payment order rejected: {error_msg}", context={"receipt": receipt})

        logger.info(f"Created Razorpay order {data.get('id')} for receipt {receipt}")
        return data

    async def _post_order(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        return await client.post(
            f"{self.api_url}/orders",
            auth=(self.key_id, self.key_secret),
            json=payload,
        )

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check the checkout handler's signature over ``order_id|payment_id``"""
        if not self.key_secret:
            return False
        expected_signature = hmac.new(
            self.key_secret.encode("utf-8"),
            f"{order_id}|{payment_id}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(signature or "", expected_signature)

# payment/gateway.py
import logging
import time
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

import requests
from fastapi import HTTPException

from config import settings
from payment.signatures import payment_signature

logger = logging.getLogger(__name__)


class GatewayError(HTTPException):
    def __init__(self, detail: str = "Payment gateway unavailable, try again later"):
        super().__init__(status_code=502, detail=detail)


class GatewayAdapter:
    """Order creation side of a payment gateway.

    `signing_secret` is the key the gateway signs checkout confirmations
    with; the ledger verifies `order_id|payment_id` against it.
    """
    name: str = ""
    key_id: str = ""
    signing_secret: str = ""
    is_live: bool = False

    def create_order(self, amount_minor_units: int, currency: str, notes: Dict[str, str]) -> Dict[str, str]:
        raise NotImplementedError

    def fetch_order_payments(self, order_id: str) -> List[dict]:
        raise NotImplementedError


class RazorpayGateway(GatewayAdapter):
    name = "razorpay"
    is_live = True

    def __init__(self, key_id: str, key_secret: str, api_url: str, timeout: int = 10):
        self.key_id = key_id
        self.signing_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.api_url}{path}"
        try:
            response = requests.request(
                method, url, auth=(self.key_id, self.signing_secret), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"Razorpay {method} {path} failed: {str(e)}")
            raise GatewayError()
        if response.status_code >= 400:
            logger.error(f"Razorpay {method} {path} returned {response.status_code}: {response.text}")
            raise GatewayError()
        return response.json()

    def create_order(self, amount_minor_units: int, currency: str, notes: Dict[str, str]) -> Dict[str, str]:
        payload = {
            "amount": amount_minor_units,
            "currency": currency,
            "receipt": f"receipt_{int(time.time() * 1000)}",
            "notes": notes,
        }
        logger.info(f"Creating Razorpay order: amount={amount_minor_units} {currency}, notes={notes}")
        order = self._request("POST", "/orders", json=payload)
        return {"order_id": order["id"]}

    def fetch_order_payments(self, order_id: str) -> List[dict]:
        data = self._request("GET", f"/orders/{order_id}/payments")
        return data.get("items", [])


class LocalGateway(GatewayAdapter):
    """Surrogate used when no gateway credentials are configured.

    Orders never leave the process and nothing is ever captured remotely;
    clients complete an order with the test payment id and signature
    returned by `test_payment`.
    """
    name = "local"
    key_id = "local_test_key"
    is_live = False

    def __init__(self, signing_secret: str):
        self.signing_secret = signing_secret

    def create_order(self, amount_minor_units: int, currency: str, notes: Dict[str, str]) -> Dict[str, str]:
        order_id = f"local_ord_{int(time.time() * 1000)}_{uuid4().hex[:9]}"
        return {"order_id": order_id}

    def fetch_order_payments(self, order_id: str) -> List[dict]:
        return []

    def test_payment(self, order_id: str) -> Tuple[str, str]:
        payment_id = f"local_pay_{uuid4().hex[:14]}"
        return payment_id, payment_signature(self.signing_secret, order_id, payment_id)


_gateway: Optional[GatewayAdapter] = None


def build_gateway() -> GatewayAdapter:
    if settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET:
        return RazorpayGateway(
            settings.RAZORPAY_KEY_ID,
            settings.RAZORPAY_KEY_SECRET,
            settings.RAZORPAY_API_URL,
            settings.GATEWAY_TIMEOUT_SECONDS,
        )
    logger.warning("Razorpay credentials not configured, payments run in offline mode")
    return LocalGateway(settings.LOCAL_GATEWAY_SECRET)


def get_gateway() -> GatewayAdapter:
    """FastAPI dependency; the adapter is chosen once per process."""
    global _gateway
    if _gateway is None:
        _gateway = build_gateway()
    return _gateway

"""
Payment processor clients.

``PayPalGateway`` talks to the PayPal Orders v2 REST API. When no PayPal
credentials are configured ``get_gateway`` returns ``SimulatedGateway`` so
local development can run the checkout flow end to end.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

import requests
from django.conf import settings

from core.exceptions import GatewayError

logger = logging.getLogger(__name__)

PAYPAL_BASE_URLS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}


@dataclass(frozen=True)
class GatewayOrder:
    order_id: str
    status: str
    approve_url: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayCapture:
    order_id: str
    capture_id: str
    amount: Decimal
    currency: str
    status: str
    payer_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class PayPalGateway:
    name = "paypal"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        mode: str = "sandbox",
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = PAYPAL_BASE_URLS.get(mode, PAYPAL_BASE_URLS["sandbox"])
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        try:
            return self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            raise GatewayError("Payment provider timed out.") from exc
        except requests.RequestException as exc:
            raise GatewayError(f"Failed to contact payment provider: {exc}") from exc

    def _access_token(self) -> str:
        resp = self._request(
            "POST",
            "/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
            headers={"Accept": "application/json"},
        )
        if resp.status_code != 200:
            raise GatewayError(f"PayPal auth error: {resp.status_code}")
        return resp.json()["access_token"]

    def _headers(self, request_id: str | None = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._access_token()}",
            "Content-Type": "application/json",
        }
        if request_id:
            # PayPal replays the original response for a repeated request id.
            headers["PayPal-Request-Id"] = request_id
        return headers

    def create_order(self, amount: Decimal, currency: str, reference: str, description: str = "") -> GatewayOrder:
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": reference,
                    "description": description[:127],
                    "amount": {"currency_code": currency, "value": f"{amount:.2f}"},
                }
            ],
        }
        resp = self._request("POST", "/v2/checkout/orders", json=payload, headers=self._headers(reference))
        if resp.status_code not in (200, 201):
            raise GatewayError(f"PayPal order error: {resp.status_code}")

        data = resp.json()
        approve_url = next(
            (link.get("href") for link in data.get("links", []) if link.get("rel") in ("approve", "payer-action")),
            None,
        )
        return GatewayOrder(order_id=data["id"], status=data.get("status", ""), approve_url=approve_url, raw=data)

    def get_order(self, order_id: str) -> dict[str, Any]:
        resp = self._request("GET", f"/v2/checkout/orders/{order_id}", headers=self._headers())
        if resp.status_code == 404:
            raise GatewayError("Order not found at payment provider.")
        if resp.status_code != 200:
            raise GatewayError(f"PayPal order lookup error: {resp.status_code}")
        return resp.json()

    def capture_order(self, order_id: str, amount_hint: Decimal | None = None) -> GatewayCapture:
        resp = self._request(
            "POST",
            f"/v2/checkout/orders/{order_id}/capture",
            json={},
            headers=self._headers(f"capture-{order_id}"),
        )
        if resp.status_code == 422 and "ORDER_ALREADY_CAPTURED" in resp.text:
            # A previous attempt went through but its response was lost.
            logger.info("PayPal order %s already captured; reading it back", order_id)
            data = self.get_order(order_id)
        elif resp.status_code in (200, 201):
            data = resp.json()
        else:
            raise GatewayError(f"PayPal capture error: {resp.status_code}")
        return parse_capture(order_id, data)


def parse_capture(order_id: str, data: dict[str, Any]) -> GatewayCapture:
    try:
        unit = data["purchase_units"][0]
        capture = unit["payments"]["captures"][0]
        amount = Decimal(str(capture["amount"]["value"]))
        currency = capture["amount"]["currency_code"]
    except (KeyError, IndexError, TypeError, InvalidOperation) as exc:
        raise GatewayError("Unexpected capture response from payment provider.") from exc

    status = capture.get("status", "")
    if status != "COMPLETED":
        raise GatewayError(f"Capture not completed (status {status or 'unknown'}).")

    return GatewayCapture(
        order_id=order_id,
        capture_id=capture.get("id", ""),
        amount=amount,
        currency=currency,
        status=status,
        payer_id=(data.get("payer") or {}).get("payer_id"),
        raw=data,
    )


class SimulatedGateway:
    """Accepts every order and captures the requested amount."""

    name = "simulated"

    def create_order(self, amount: Decimal, currency: str, reference: str, description: str = "") -> GatewayOrder:
        order_id = f"SIM-{uuid.uuid4().hex[:16].upper()}"
        return GatewayOrder(
            order_id=order_id,
            status="CREATED",
            raw={"id": order_id, "reference_id": reference, "amount": f"{amount:.2f}", "currency": currency},
        )

    def capture_order(self, order_id: str, amount_hint: Decimal | None = None) -> GatewayCapture:
        if amount_hint is None:
            raise GatewayError("Simulated capture needs the order amount.")
        capture_id = f"SIMCAP-{uuid.uuid4().hex[:12].upper()}"
        return GatewayCapture(
            order_id=order_id,
            capture_id=capture_id,
            amount=amount_hint,
            currency=settings.PAYOUT_CURRENCY,
            status="COMPLETED",
            payer_id="SIMULATED",
            raw={"id": order_id, "capture_id": capture_id, "amount": f"{amount_hint:.2f}"},
        )


def get_gateway() -> PayPalGateway | SimulatedGateway:
    if settings.PAYPAL_CLIENT_ID and settings.PAYPAL_CLIENT_SECRET:
        return PayPalGateway(
            client_id=settings.PAYPAL_CLIENT_ID,
            client_secret=settings.PAYPAL_CLIENT_SECRET,
            mode=settings.PAYPAL_MODE,
            timeout=settings.PAYPAL_TIMEOUT_SECONDS,
        )
    return SimulatedGateway()

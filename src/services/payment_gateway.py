"""
Payment gateway clients  (Strategy Pattern)
===========================================

* ``StripeGateway``    -- Stripe REST API over ``httpx`` (cards with a
  stored payment-method token, when a secret key is configured).
* ``SimulatedGateway`` -- always succeeds; used for wallets / cash and
  whenever no gateway key is configured.

Only the outcome (success flag, transaction reference, amount) is stored
by the caller, never gateway internals.
"""

from __future__ import annotations

import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from src.config import settings

logger = logging.getLogger(__name__)

SIMULATED_PREFIX = "sim_"


@dataclass(frozen=True)
class GatewayResult:
    success: bool
    reference: Optional[str]
    amount: float
    status: str
    error: Optional[str] = None


@dataclass(frozen=True)
class CardDetails:
    last4: Optional[str]
    brand: Optional[str]
    expiry_month: Optional[int]
    expiry_year: Optional[int]


def _cents(amount: float) -> int:
    return int(round(amount * 100))


# ── Strategy hierarchy ────────────────────────────────────────────────


class PaymentGateway(ABC):
    @abstractmethod
    async def charge(
        self, token: Optional[str], amount: float, currency: str, metadata: dict[str, Any]
    ) -> GatewayResult: ...

    @abstractmethod
    async def refund(self, reference: str, amount: float) -> GatewayResult: ...

    @abstractmethod
    async def describe_method(self, token: str) -> Optional[CardDetails]: ...


class SimulatedGateway(PaymentGateway):
    @staticmethod
    def _reference(kind: str) -> str:
        return f"{SIMULATED_PREFIX}{kind}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"

    async def charge(self, token, amount, currency, metadata) -> GatewayResult:
        return GatewayResult(True, self._reference("pay"), amount, "succeeded")

    async def refund(self, reference, amount) -> GatewayResult:
        return GatewayResult(True, self._reference("ref"), amount, "succeeded")

    async def describe_method(self, token) -> Optional[CardDetails]:
        return None


class StripeGateway(PaymentGateway):
    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com/v1",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base,
            auth=(self.secret_key, ""),
            timeout=self.timeout,
            transport=self.transport,
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return f"HTTP {response.status_code}"

    async def charge(self, token, amount, currency, metadata) -> GatewayResult:
        form = {
            "amount": _cents(amount),
            "currency": currency.lower(),
            "payment_method": token,
            "confirm": "true",
            "return_url": f"{settings.frontend_url}/payment/success",
        }
        form.update({f"metadata[{k}]": str(v) for k, v in metadata.items()})
        try:
            async with self._client() as client:
                response = await client.post("/payment_intents", data=form)
        except httpx.HTTPError as exc:
            logger.warning("Stripe charge transport error: %s", exc)
            return GatewayResult(False, None, amount, "error", str(exc))

        if response.is_error:
            return GatewayResult(False, None, amount, "failed", self._error_message(response))
        body = response.json()
        return GatewayResult(
            success=body.get("status") == "succeeded",
            reference=body.get("id"),
            amount=body.get("amount", _cents(amount)) / 100,
            status=body.get("status", "unknown"),
        )

    async def refund(self, reference, amount) -> GatewayResult:
        try:
            async with self._client() as client:
                response = await client.post(
                    "/refunds",
                    data={"payment_intent": reference, "amount": _cents(amount)},
                )
        except httpx.HTTPError as exc:
            logger.warning("Stripe refund transport error: %s", exc)
            return GatewayResult(False, None, amount, "error", str(exc))

        if response.is_error:
            return GatewayResult(False, None, amount, "failed", self._error_message(response))
        body = response.json()
        return GatewayResult(
            success=body.get("status") in ("succeeded", "pending"),
            reference=body.get("id"),
            amount=body.get("amount", _cents(amount)) / 100,
            status=body.get("status", "unknown"),
        )

    async def describe_method(self, token) -> Optional[CardDetails]:
        try:
            async with self._client() as client:
                response = await client.get(f"/payment_methods/{token}")
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Could not fetch card details for %s: %s", token, exc)
            return None
        card = response.json().get("card") or {}
        return CardDetails(
            last4=card.get("last4"),
            brand=card.get("brand"),
            expiry_month=card.get("exp_month"),
            expiry_year=card.get("exp_year"),
        )


# ── Selection ─────────────────────────────────────────────────────────


def select_gateway(tokenized_card: bool) -> PaymentGateway:
    """Real gateway for stored cards when configured, simulated otherwise."""
    if tokenized_card and settings.stripe_secret_key:
        return StripeGateway(
            settings.stripe_secret_key,
            settings.stripe_api_base,
            settings.http_timeout_seconds,
        )
    return SimulatedGateway()


def gateway_for_reference(reference: str) -> PaymentGateway:
    return select_gateway(not reference.startswith(SIMULATED_PREFIX))

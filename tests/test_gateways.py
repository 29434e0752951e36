"""Unit tests for the payment gateway strategies and the mail relay client."""

import httpx
import pytest

from src.config import settings
from src.domain.errors import UpstreamFailure
from src.services.mailer import Mailer
from src.services.payment_gateway import (
    SimulatedGateway,
    StripeGateway,
    gateway_for_reference,
    select_gateway,
)


def stripe_with(handler) -> StripeGateway:
    return StripeGateway("sk_test_123", "https://stripe.test/v1", transport=httpx.MockTransport(handler))


class TestSimulatedGateway:
    @pytest.mark.asyncio
    async def test_charge_and_refund_always_succeed(self):
        gateway = SimulatedGateway()
        charge = await gateway.charge(None, 12.5, "USD", {})
        assert charge.success and charge.reference.startswith("sim_pay_")
        refund = await gateway.refund(charge.reference, 10.0)
        assert refund.success and refund.reference.startswith("sim_ref_")
        assert refund.amount == 10.0


class TestStripeGateway:
    @pytest.mark.asyncio
    async def test_charge_sends_cents_and_parses_intent(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"id": "pi_1", "status": "succeeded", "amount": 5665})

        result = await stripe_with(handler).charge("pm_1", 56.65, "USD", {"booking_id": 7})
        assert result.success
        assert result.reference == "pi_1"
        assert result.amount == 56.65
        assert seen["path"] == "/v1/payment_intents"
        assert "amount=5665" in seen["body"]
        assert "currency=usd" in seen["body"]

    @pytest.mark.asyncio
    async def test_declined_card_is_a_failed_result(self):
        def handler(request):
            return httpx.Response(402, json={"error": {"message": "Your card was declined."}})

        result = await stripe_with(handler).charge("pm_1", 10.0, "USD", {})
        assert not result.success
        assert result.reference is None
        assert result.error == "Your card was declined."

    @pytest.mark.asyncio
    async def test_transport_error_is_a_failed_result(self):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        result = await stripe_with(handler).refund("pi_1", 5.0)
        assert not result.success
        assert result.status == "error"

    @pytest.mark.asyncio
    async def test_pending_refund_counts_as_success(self):
        def handler(request):
            return httpx.Response(200, json={"id": "re_1", "status": "pending", "amount": 500})

        result = await stripe_with(handler).refund("pi_1", 5.0)
        assert result.success
        assert result.reference == "re_1"

    @pytest.mark.asyncio
    async def test_describe_method(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"card": {"last4": "4242", "brand": "visa", "exp_month": 12, "exp_year": 2030}},
            )

        card = await stripe_with(handler).describe_method("pm_1")
        assert card.last4 == "4242"
        assert card.brand == "visa"

    @pytest.mark.asyncio
    async def test_describe_method_failure_is_none(self):
        card = await stripe_with(lambda request: httpx.Response(404)).describe_method("pm_x")
        assert card is None


class TestGatewaySelection:
    def test_simulated_without_key(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", "")
        assert isinstance(select_gateway(True), SimulatedGateway)

    def test_stripe_for_tokenized_card_with_key(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
        assert isinstance(select_gateway(True), StripeGateway)
        assert isinstance(select_gateway(False), SimulatedGateway)

    def test_refunds_go_back_to_the_charging_gateway(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
        assert isinstance(gateway_for_reference("sim_pay_1_abc"), SimulatedGateway)
        assert isinstance(gateway_for_reference("pi_123"), StripeGateway)


class TestMailer:
    @pytest.mark.asyncio
    async def test_unconfigured_relay_skips(self):
        assert await Mailer(api_url="").send("a@example.com", "notification", {}) is False

    @pytest.mark.asyncio
    async def test_unconfigured_relay_strict_raises(self):
        with pytest.raises(UpstreamFailure):
            await Mailer(api_url="").send("a@example.com", "notification", {}, strict=True)

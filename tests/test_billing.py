"""
Tests for billing.

Stripe is never contacted: webhook payloads are signed locally with the test
webhook secret, and the outbound Stripe helpers are patched.
"""

import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from simplegrowth.billing import stripe_client, webhooks
from simplegrowth.config import settings
from simplegrowth.models import AuditLog, Invoice, Subscription


WEBHOOK_SECRET = "whsec_test_secret"


def _sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def _event(event_type: str, obj: dict, event_id: str = "evt_1") -> str:
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}})


async def _post_event(client, payload: str, signature: str = None):
    headers = {"content-type": "application/json"}
    if signature is not None:
        headers["stripe-signature"] = signature
    return await client.post("/api/billing/webhook", content=payload, headers=headers)


async def _count(session_factory, model) -> int:
    async with session_factory() as fresh:
        return (await fresh.execute(select(func.count()).select_from(model))).scalar_one()


# =============================================================================
# Webhook signature
# =============================================================================

class TestWebhookSignature:
    """A webhook that fails verification is rejected before any write."""

    @pytest.mark.asyncio
    async def test_missing_signature(self, client, session_factory, organization):
        payload = _event("checkout.session.completed", {
            "metadata": {"organization_id": organization.id, "plan": "chauffeur"},
        })

        response = await _post_event(client, payload)

        assert response.status_code == 400
        assert response.json()["detail"] == "No signature"
        assert await _count(session_factory, Subscription) == 0
        assert await _count(session_factory, AuditLog) == 0

    @pytest.mark.asyncio
    async def test_wrong_secret(self, client, session_factory, organization):
        payload = _event("checkout.session.completed", {
            "customer": "cus_1",
            "subscription": "sub_stripe_1",
            "metadata": {"organization_id": organization.id, "plan": "chauffeur"},
        })

        response = await _post_event(client, payload, _sign(payload, secret="whsec_someone_else"))

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid signature"
        assert await _count(session_factory, Subscription) == 0
        assert await _count(session_factory, AuditLog) == 0

    @pytest.mark.asyncio
    async def test_tampered_payload(self, client, session_factory, organization):
        payload = _event("invoice.paid", {"subscription": "sub_stripe_1"})
        signature = _sign(payload)

        response = await _post_event(client, payload.replace("invoice.paid", "invoice.payment_failed"), signature)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_stale_timestamp(self, client):
        payload = _event("invoice.paid", {"subscription": "sub_stripe_1"})

        response = await _post_event(client, payload, _sign(payload, timestamp=int(time.time()) - 3600))

        assert response.status_code == 400

    def test_verify_event_rejects_non_event_json(self):
        payload = json.dumps(["not", "an", "event"])

        with pytest.raises(webhooks.InvalidWebhook, match="Invalid payload"):
            webhooks.verify_event(payload.encode(), _sign(payload), WEBHOOK_SECRET)

    def test_verify_event_returns_event(self):
        payload = _event("invoice.paid", {"subscription": "sub_1"}, event_id="evt_42")

        event = webhooks.verify_event(payload.encode(), _sign(payload), WEBHOOK_SECRET)

        assert event["id"] == "evt_42"
        assert event["data"]["object"]["subscription"] == "sub_1"


# =============================================================================
# Webhook events
# =============================================================================

class TestWebhookEvents:
    """Tests for the Stripe event handlers."""

    @pytest.mark.asyncio
    async def test_checkout_creates_active_subscription(self, client, session_factory, organization):
        payload = _event("checkout.session.completed", {
            "id": "cs_1",
            "customer": "cus_1",
            "subscription": "sub_stripe_1",
            "metadata": {"organization_id": organization.id, "plan": "chauffeur"},
        })

        response = await _post_event(client, payload, _sign(payload))

        assert response.status_code == 200
        assert response.json() == {"received": True}

        async with session_factory() as fresh:
            subscription = (await fresh.execute(select(Subscription))).scalar_one()
            assert subscription.status == "active"
            assert subscription.plan == "chauffeur"
            assert subscription.price_monthly == 19900
            assert subscription.stripe_customer_id == "cus_1"

            audit = (await fresh.execute(select(AuditLog))).scalar_one()
            assert audit.action == "subscription_activated"
            assert audit.source == "stripe_webhook"

    @pytest.mark.asyncio
    async def test_checkout_converts_trial_in_place(self, client, db, session_factory, organization):
        trial = Subscription(organization_id=organization.id, plan="website_management", status="trialing")
        db.add(trial)
        await db.commit()

        payload = _event("checkout.session.completed", {
            "customer": "cus_1",
            "subscription": "sub_stripe_1",
            "metadata": {"organization_id": organization.id, "plan": "website_management"},
        })
        await _post_event(client, payload, _sign(payload))

        async with session_factory() as fresh:
            rows = (await fresh.execute(select(Subscription))).scalars().all()
            assert [row.id for row in rows] == [trial.id]
            assert rows[0].status == "active"
            assert rows[0].stripe_subscription_id == "sub_stripe_1"

    @pytest.mark.asyncio
    async def test_checkout_redelivery_is_idempotent(self, client, session_factory, organization):
        payload = _event("checkout.session.completed", {
            "customer": "cus_1",
            "subscription": "sub_stripe_1",
            "metadata": {"organization_id": organization.id, "plan": "cybersecurity"},
        })

        await _post_event(client, payload, _sign(payload))
        await _post_event(client, payload, _sign(payload))

        assert await _count(session_factory, Subscription) == 1

    @pytest.mark.asyncio
    async def test_checkout_without_metadata_ignored(self, client, session_factory):
        payload = _event("checkout.session.completed", {"id": "cs_1", "metadata": {}})

        response = await _post_event(client, payload, _sign(payload))

        assert response.status_code == 200
        assert await _count(session_factory, Subscription) == 0

    @pytest.mark.asyncio
    async def test_subscription_updated_copies_period(self, client, db, session_factory, organization):
        db.add(Subscription(
            organization_id=organization.id,
            plan="chauffeur",
            status="active",
            stripe_subscription_id="sub_stripe_1",
        ))
        await db.commit()

        period_end = int(datetime(2026, 3, 1, tzinfo=timezone.utc).timestamp())
        payload = _event("customer.subscription.updated", {
            "id": "sub_stripe_1",
            "status": "past_due",
            "current_period_end": period_end,
        })
        await _post_event(client, payload, _sign(payload))

        async with session_factory() as fresh:
            subscription = (await fresh.execute(select(Subscription))).scalar_one()
            assert subscription.status == "past_due"
            assert subscription.current_period_end.replace(tzinfo=timezone.utc).month == 3

            audit = (await fresh.execute(select(AuditLog))).scalar_one()
            assert audit.field_name == "status"
            assert audit.new_value == "past_due"

    @pytest.mark.asyncio
    async def test_deleted_and_payment_failed(self, client, db, session_factory, organization):
        db.add_all([
            Subscription(organization_id=organization.id, plan="chauffeur",
                         status="active", stripe_subscription_id="sub_a"),
            Subscription(organization_id=organization.id, plan="cybersecurity",
                         status="active", stripe_subscription_id="sub_b"),
        ])
        await db.commit()

        deleted = _event("customer.subscription.deleted", {"id": "sub_a"})
        failed = _event("invoice.payment_failed", {"subscription": "sub_b"}, event_id="evt_2")
        await _post_event(client, deleted, _sign(deleted))
        await _post_event(client, failed, _sign(failed))

        async with session_factory() as fresh:
            rows = {
                row.stripe_subscription_id: row
                for row in (await fresh.execute(select(Subscription))).scalars().all()
            }
            assert rows["sub_a"].status == "canceled"
            assert rows["sub_a"].canceled_at is not None
            assert rows["sub_b"].status == "past_due"

    @pytest.mark.asyncio
    async def test_unknown_event_acknowledged(self, client):
        payload = _event("customer.created", {"id": "cus_1"})

        response = await _post_event(client, payload, _sign(payload))

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_missing_webhook_secret(self, client):
        payload = _event("invoice.paid", {})

        with patch.object(settings, "STRIPE_WEBHOOK_SECRET", ""):
            response = await _post_event(client, payload, _sign(payload))

        assert response.status_code == 500
        assert response.json()["detail"] == "Stripe not configured"


# =============================================================================
# Checkout, portal and subscriptions
# =============================================================================

class TestCheckout:
    """Tests for POST /api/billing/checkout and /portal."""

    @pytest.mark.asyncio
    async def test_checkout_returns_session_url(self, client, member, headers_for):
        with patch(
            "simplegrowth.billing.stripe_client.create_checkout_session",
            new_callable=AsyncMock,
            return_value={"url": "https://checkout.stripe.test/cs_1"},
        ) as create:
            response = await client.post(
                "/api/billing/checkout", json={"plan": "chauffeur"}, headers=headers_for(member),
            )

        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.test/cs_1"}
        kwargs = create.call_args.kwargs
        assert kwargs["organization_id"] == member.organization_id
        assert kwargs["plan"] == "chauffeur"
        assert kwargs["customer_id"] is None

    @pytest.mark.asyncio
    async def test_checkout_rejects_active_plan(self, client, db, member, headers_for):
        db.add(Subscription(organization_id=member.organization_id, plan="chauffeur", status="active"))
        await db.commit()

        response = await client.post(
            "/api/billing/checkout", json={"plan": "chauffeur"}, headers=headers_for(member),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Already subscribed to this plan"

    @pytest.mark.asyncio
    async def test_checkout_requires_organization(self, client, make_user, headers_for):
        loner = await make_user(email="loner@example.com")

        response = await client.post(
            "/api/billing/checkout", json={"plan": "chauffeur"}, headers=headers_for(loner),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "No organization found"

    @pytest.mark.asyncio
    async def test_checkout_rejects_success_fee_plan(self, client, member, headers_for):
        response = await client.post(
            "/api/billing/checkout", json={"plan": "cashflow_ai"}, headers=headers_for(member),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_checkout_without_stripe_key(self, client, member, headers_for):
        response = await client.post(
            "/api/billing/checkout", json={"plan": "cybersecurity"}, headers=headers_for(member),
        )

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to create checkout session"

    @pytest.mark.asyncio
    async def test_portal_without_customer(self, client, member, headers_for):
        response = await client.post("/api/billing/portal", headers=headers_for(member))

        assert response.status_code == 400
        assert response.json()["detail"] == "No billing account found"

    @pytest.mark.asyncio
    async def test_portal_uses_existing_customer(self, client, db, member, headers_for):
        db.add(Subscription(organization_id=member.organization_id, plan="chauffeur",
                            status="active", stripe_customer_id="cus_9"))
        await db.commit()

        with patch(
            "simplegrowth.billing.stripe_client.create_portal_session",
            new_callable=AsyncMock,
            return_value={"url": "https://billing.stripe.test/p"},
        ) as create:
            response = await client.post("/api/billing/portal", headers=headers_for(member))

        assert response.status_code == 200
        assert create.call_args.kwargs["customer_id"] == "cus_9"


class TestSubscriptions:
    """Tests for listing and canceling subscriptions."""

    @pytest.mark.asyncio
    async def test_lists_visible_statuses_only(self, client, db, member, headers_for):
        db.add_all([
            Subscription(organization_id=member.organization_id, plan="chauffeur", status="active"),
            Subscription(organization_id=member.organization_id, plan="cybersecurity", status="canceled"),
            Subscription(organization_id=member.organization_id, plan="website_management", status="trialing"),
        ])
        await db.commit()

        response = await client.get("/api/billing/subscriptions", headers=headers_for(member))

        plans = sorted(s["plan"] for s in response.json()["subscriptions"])
        assert plans == ["chauffeur", "website_management"]

    @pytest.mark.asyncio
    async def test_no_organization_empty_list(self, client, make_user, headers_for):
        loner = await make_user(email="loner@example.com")

        response = await client.get("/api/billing/subscriptions", headers=headers_for(loner))

        assert response.json() == {"subscriptions": []}

    @pytest.mark.asyncio
    async def test_cancel_trial_stays_local(self, client, db, session_factory, member, headers_for):
        trial = Subscription(organization_id=member.organization_id, plan="chauffeur", status="trialing")
        db.add(trial)
        await db.commit()

        with patch("simplegrowth.billing.stripe_client.cancel_subscription", new_callable=AsyncMock) as cancel:
            response = await client.post(
                f"/api/billing/subscriptions/{trial.id}/cancel", headers=headers_for(member),
            )

        assert response.status_code == 200
        assert response.json()["status"] == "canceled"
        cancel.assert_not_called()

        async with session_factory() as fresh:
            audit = (await fresh.execute(select(AuditLog))).scalar_one()
            assert audit.old_value == "trialing"
            assert audit.new_value == "canceled"

    @pytest.mark.asyncio
    async def test_cancel_stripe_subscription(self, client, db, member, headers_for):
        subscription = Subscription(organization_id=member.organization_id, plan="chauffeur",
                                    status="active", stripe_subscription_id="sub_stripe_1")
        db.add(subscription)
        await db.commit()

        with patch("simplegrowth.billing.stripe_client.cancel_subscription", new_callable=AsyncMock) as cancel:
            response = await client.post(
                f"/api/billing/subscriptions/{subscription.id}/cancel", headers=headers_for(member),
            )

        assert response.status_code == 200
        cancel.assert_awaited_once_with("sub_stripe_1")

        again = await client.post(
            f"/api/billing/subscriptions/{subscription.id}/cancel", headers=headers_for(member),
        )
        assert again.status_code == 400

    @pytest.mark.asyncio
    async def test_cancel_other_organization(self, client, db, member, make_organization, headers_for):
        other = await make_organization()
        subscription = Subscription(organization_id=other.id, plan="chauffeur", status="active")
        db.add(subscription)
        await db.commit()

        response = await client.post(
            f"/api/billing/subscriptions/{subscription.id}/cancel", headers=headers_for(member),
        )

        assert response.status_code == 404


# =============================================================================
# Success fee
# =============================================================================

class TestSuccessFee:
    """Tests for POST /api/billing/success-fee."""

    @pytest_asyncio.fixture
    async def recovered_invoice(self, db, member):
        db.add(Subscription(organization_id=member.organization_id, plan="cashflow_ai",
                            status="active", stripe_customer_id="cus_7"))
        invoice = Invoice(
            organization_id=member.organization_id,
            invoice_number="INV-1001",
            amount=125000,
            amount_paid=125000,
            due_date=datetime(2026, 1, 15, tzinfo=timezone.utc),
            status="paid",
        )
        db.add(invoice)
        await db.commit()
        return invoice

    @pytest.mark.asyncio
    async def test_bills_eight_percent_once(self, client, session_factory, member, headers_for, recovered_invoice):
        with patch.object(settings, "STRIPE_SECRET_KEY", "sk_test"), patch(
            "simplegrowth.billing.stripe_client.create_success_fee_invoice",
            new_callable=AsyncMock,
            return_value={"id": "in_1"},
        ) as create:
            response = await client.post(
                "/api/billing/success-fee",
                json={"invoice_id": recovered_invoice.id},
                headers=headers_for(member),
            )
            again = await client.post(
                "/api/billing/success-fee",
                json={"invoice_id": recovered_invoice.id},
                headers=headers_for(member),
            )

        assert response.status_code == 200
        assert response.json() == {
            "invoice_id": recovered_invoice.id,
            "recovered_amount": 125000,
            "fee": 10000,
            "stripe_invoice_id": "in_1",
        }
        assert create.call_args.kwargs["customer_id"] == "cus_7"
        assert create.call_args.kwargs["amount"] == 10000
        assert "INV-1001" in create.call_args.kwargs["description"]

        assert again.status_code == 400
        assert create.call_count == 1

        async with session_factory() as fresh:
            audit = (await fresh.execute(
                select(AuditLog).where(AuditLog.action == "success_fee_billed")
            )).scalar_one()
            assert audit.extra_data == {"stripe_invoice_id": "in_1"}

    @pytest.mark.asyncio
    async def test_unpaid_invoice_rejected(self, client, db, member, headers_for):
        invoice = Invoice(
            organization_id=member.organization_id,
            invoice_number="INV-2",
            amount=5000,
            due_date=datetime(2026, 1, 15, tzinfo=timezone.utc),
            status="sent",
        )
        db.add(invoice)
        await db.commit()

        with patch.object(settings, "STRIPE_SECRET_KEY", "sk_test"):
            response = await client.post(
                "/api/billing/success-fee", json={"invoice_id": invoice.id}, headers=headers_for(member),
            )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invoice has not been recovered"

    @pytest.mark.asyncio
    async def test_stripe_not_configured(self, client, member, headers_for):
        response = await client.post(
            "/api/billing/success-fee", json={"invoice_id": "inv_x"}, headers=headers_for(member),
        )

        assert response.status_code == 500
        assert response.json()["detail"] == "Stripe not configured"


# =============================================================================
# Unit Tests - Stripe client
# =============================================================================

class TestStripeClient:
    """Tests for the thin Stripe wrappers."""

    @pytest.mark.asyncio
    async def test_unconfigured_raises(self):
        with pytest.raises(stripe_client.StripeNotConfigured):
            await stripe_client.create_portal_session("cus_1", "https://example.com")

    @pytest.mark.parametrize("recovered,fee", [
        (100000, 8000),
        (1, 0),
        (7, 1),
        (0, 0),
    ])
    def test_success_fee(self, recovered, fee):
        assert stripe_client.calculate_success_fee(recovered) == fee

    def test_plan_catalogue(self):
        assert stripe_client.PLANS["website_management"].amount == 7900
        assert stripe_client.PLANS["cybersecurity"].amount == 3900
        assert stripe_client.PLANS["chauffeur"].amount == 19900
        assert stripe_client.PLANS["cashflow_ai"].success_fee_percentage == 0.08
        assert stripe_client.PLANS["cashflow_ai"].price_id is None

    @pytest.mark.asyncio
    async def test_checkout_session_metadata(self):
        fake = MagicMock()
        fake.checkout.Session.create_async = AsyncMock(return_value={"url": "https://checkout.stripe.test"})
        with patch.object(settings, "STRIPE_SECRET_KEY", "sk_test"), \
                patch.object(stripe_client, "stripe", fake):
            await stripe_client.create_checkout_session("org_1", "chauffeur", "https://ok", "https://cancel")

        fake.checkout.Session.create.assert_not_called()
        kwargs = fake.checkout.Session.create_async.await_args.kwargs
        assert kwargs["mode"] == "subscription"
        assert kwargs["metadata"] == {"organization_id": "org_1", "plan": "chauffeur"}
        assert kwargs["subscription_data"] == {"metadata": kwargs["metadata"]}
        assert fake.api_key == "sk_test"

    @pytest.mark.asyncio
    async def test_checkout_for_success_fee_plan_rejected(self):
        with patch.object(settings, "STRIPE_SECRET_KEY", "sk_test"), \
                patch.object(stripe_client, "stripe", MagicMock()):
            with pytest.raises(ValueError):
                await stripe_client.create_checkout_session("org_1", "cashflow_ai", "https://ok", "https://cancel")

    @pytest.mark.asyncio
    async def test_cancel_uses_async_api(self):
        fake = MagicMock()
        fake.Subscription.cancel_async = AsyncMock(return_value={"id": "sub_1", "status": "canceled"})
        with patch.object(settings, "STRIPE_SECRET_KEY", "sk_test"), \
                patch.object(stripe_client, "stripe", fake):
            result = await stripe_client.cancel_subscription("sub_1")

        assert result["status"] == "canceled"
        fake.Subscription.cancel_async.assert_awaited_once_with("sub_1")
        fake.Subscription.cancel.assert_not_called()

    @pytest.mark.asyncio
    async def test_success_fee_invoice(self):
        fake = MagicMock()
        fake.InvoiceItem.create_async = AsyncMock()
        fake.Invoice.create_async = AsyncMock(return_value={"id": "in_9"})
        with patch.object(settings, "STRIPE_SECRET_KEY", "sk_test"), \
                patch.object(stripe_client, "stripe", fake):
            invoice = await stripe_client.create_success_fee_invoice("cus_1", 800, "Fee")

        assert invoice == {"id": "in_9"}
        fake.InvoiceItem.create_async.assert_awaited_once_with(
            customer="cus_1", amount=800, currency="usd", description="Fee",
        )
        fake.Invoice.create_async.assert_awaited_once_with(customer="cus_1", auto_advance=True)

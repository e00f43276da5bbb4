"""Integration tests for Ledger and Webhook API endpoints"""

import pytest
from httpx import AsyncClient

from meta_ledger.depends import AUTH_USER_HEADER

OWNER = "user_api"
AUTH = {AUTH_USER_HEADER: OWNER}


async def admin_grant(client: AsyncClient, amount: int, key: str, owner_id: str = OWNER):
    response = await client.post(
        "/api/ledger/admin/grants",
        json={"owner_id": owner_id, "amount": amount, "idempotency_key": key},
    )
    assert response.status_code == 200
    return response.json()


async def authorize(client: AsyncClient, feature_key: str, headers=None):
    return await client.post(
        "/api/ledger/features/authorize",
        json={"feature_key": feature_key},
        headers=AUTH if headers is None else headers,
    )


class TestEntitlementGateAPI:
    """Integration test suite for POST /ledger/features/authorize"""

    @pytest.mark.asyncio
    async def test_purchase_consume_top_up_flow(self, client: AsyncClient):
        """A 3-Meta feature drains a 3-Meta lot, then 402 until a payment lands"""
        await admin_grant(client, 3, "grant-flow-1")

        first = await authorize(client, "career_gap_deep")
        assert first.status_code == 200
        data = first.json()
        assert data["allowed"] is True
        assert data["mode"] == "credit"
        assert data["cost_charged"] == 3
        assert data["balance_after"] == 0

        second = await authorize(client, "career_gap_deep")
        assert second.status_code == 402
        error = second.json()["error"]
        assert error["code"] == "INSUFFICIENT_CREDIT"
        assert error["details"]["required"] == 3
        assert error["details"]["remedies"] == ["top_up", "upgrade"]

        payment = await client.post(
            "/api/webhooks/payments",
            json={"external_transaction_id": "pay_flow_1", "owner_id": OWNER, "amount": "7"},
        )
        assert payment.status_code == 200
        assert payment.json()["status"] == "credited"

        balance = await client.get("/api/ledger/balance", headers=AUTH)
        assert balance.status_code == 200
        assert balance.json()["balance"] == 7
        assert balance.json()["active_lots"] == 1

    @pytest.mark.asyncio
    async def test_requires_authenticated_owner(self, client: AsyncClient):
        response = await authorize(client, "fermi", headers={})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_blank_auth_header_is_unauthenticated(self, client: AsyncClient):
        response = await authorize(client, "fermi", headers={AUTH_USER_HEADER: "   "})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_feature_returns_404(self, client: AsyncClient):
        response = await authorize(client, "teleport")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "UNKNOWN_FEATURE"

    @pytest.mark.asyncio
    async def test_free_limit_without_overflow_returns_403(self, client: AsyncClient):
        """general_interview allows one free use a month on the free plan"""
        first = await authorize(client, "general_interview")
        assert first.status_code == 200
        assert first.json()["mode"] == "free_quota"
        assert first.json()["used_this_month"] == 1

        second = await authorize(client, "general_interview")
        assert second.status_code == 403
        error = second.json()["error"]
        assert error["code"] == "LIMIT_EXCEEDED"
        assert error["details"]["monthly_limit"] == 1
        assert error["details"]["remedies"] == ["upgrade"]

    @pytest.mark.asyncio
    async def test_free_limit_with_overflow_charges_credit(self, client: AsyncClient):
        """case_generate continues at 1 Meta once the 3 free uses are gone"""
        await admin_grant(client, 2, "grant-overflow-1")

        for _ in range(3):
            response = await authorize(client, "case_generate")
            assert response.json()["mode"] == "free_quota"

        overflow = await authorize(client, "case_generate")
        assert overflow.status_code == 200
        assert overflow.json()["mode"] == "credit"
        assert overflow.json()["cost_charged"] == 1
        assert overflow.json()["balance_after"] == 1

    @pytest.mark.asyncio
    async def test_pro_plan_is_unlimited(self, client: AsyncClient):
        subscribed = await client.post(
            "/api/webhooks/stripe/subscription",
            json={
                "id": "evt_sub_1",
                "type": "checkout.session.completed",
                "data": {
                    "object": {
                        "mode": "subscription",
                        "metadata": {"user_id": OWNER},
                        "customer": "cus_1",
                        "subscription": "sub_1",
                    }
                },
            },
        )
        assert subscribed.json() == {"received": True, "status": "updated", "plan": "pro"}

        response = await authorize(client, "interview_10")

        assert response.status_code == 200
        assert response.json()["mode"] == "unlimited"
        assert response.json()["cost_charged"] == 0


class TestReadEndpoints:
    """Integration test suite for balance, lots, events and usage"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/balance", "/lots", "/events", "/usage"])
    async def test_requires_authenticated_owner(self, client: AsyncClient, path):
        response = await client.get(f"/api/ledger{path}")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_empty_owner_has_zero_balance(self, client: AsyncClient):
        response = await client.get("/api/ledger/balance", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["balance"] == 0
        assert data["active_lots"] == 0
        assert data["next_expiry"] is None

    @pytest.mark.asyncio
    async def test_lots_and_events_reflect_consumption(self, client: AsyncClient):
        await admin_grant(client, 5, "grant-read-1")
        await authorize(client, "interview_10")

        lots = await client.get("/api/ledger/lots", headers=AUTH)
        assert lots.status_code == 200
        assert [lot["remaining"] for lot in lots.json()["lots"]] == [3]

        events = await client.get("/api/ledger/events", headers=AUTH, params={"limit": 1})
        assert events.status_code == 200
        data = events.json()
        assert data["total"] == 2
        assert data["has_more"] is True
        assert data["events"][0]["event_type"] == "consume"
        assert data["events"][0]["amount"] == 2
        assert data["events"][0]["reason"] == "feature:interview_10"

    @pytest.mark.asyncio
    async def test_events_rejects_out_of_range_limit(self, client: AsyncClient):
        response = await client.get("/api/ledger/events", headers=AUTH, params={"limit": 500})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_usage_counts_this_month(self, client: AsyncClient):
        await authorize(client, "general_interview")

        response = await client.get("/api/ledger/usage", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["plan"] == "free"
        items = {item["feature_key"]: item for item in data["items"]}
        assert items["general_interview"]["used_this_month"] == 1
        assert items["general_interview"]["remaining"] == 0
        assert items["case_generate"]["remaining"] == 3


class TestAdminGrantAPI:

    @pytest.mark.asyncio
    async def test_repeated_idempotency_key_is_duplicate(self, client: AsyncClient):
        first = await admin_grant(client, 10, "campaign-1")
        second = await admin_grant(client, 10, "campaign-1")

        assert first["status"] == "credited"
        assert second["status"] == "duplicate"
        assert second["lot_id"] == first["lot_id"]

        balance = await client.get("/api/ledger/balance", headers=AUTH)
        assert balance.json()["balance"] == 10

    @pytest.mark.asyncio
    async def test_non_positive_amount_is_rejected(self, client: AsyncClient):
        response = await client.post(
            "/api/ledger/admin/grants",
            json={"owner_id": OWNER, "amount": 0},
        )

        assert response.status_code == 422


class TestPaymentWebhookAPI:

    @pytest.mark.asyncio
    async def test_redelivery_credits_once(self, client: AsyncClient):
        payload = {"external_transaction_id": "pay_dup_1", "owner_id": OWNER, "amount": 7}

        first = await client.post("/api/webhooks/payments", json=payload)
        second = await client.post("/api/webhooks/payments", json=payload)

        assert first.json()["status"] == "credited"
        assert second.json()["status"] == "duplicate"

        balance = await client.get("/api/ledger/balance", headers=AUTH)
        assert balance.json()["balance"] == 7

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"external_transaction_id": "pay_bad_1", "amount": 7},
            {"external_transaction_id": "pay_bad_2", "owner_id": OWNER},
            {"external_transaction_id": "pay_bad_3", "owner_id": OWNER, "amount": "lots"},
            {"external_transaction_id": "pay_bad_4", "owner_id": OWNER, "amount": -3},
        ],
    )
    async def test_malformed_payment_is_acknowledged_and_ignored(self, client: AsyncClient, payload):
        response = await client.post("/api/webhooks/payments", json=payload)

        assert response.status_code == 200
        assert response.json() == {"received": True, "status": "ignored"}


class TestStripeWebhookAPI:

    @staticmethod
    def checkout_event(mode="payment", metadata=None, payment_intent="pi_meta_1"):
        return {
            "id": "evt_meta_1",
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": "cs_test_1",
                    "mode": mode,
                    "payment_intent": payment_intent,
                    "metadata": metadata if metadata is not None else {
                        "auth_user_id": OWNER,
                        "meta_amount": "5",
                    },
                }
            },
        }

    @pytest.mark.asyncio
    async def test_meta_purchase_is_credited_once(self, client: AsyncClient):
        first = await client.post("/api/webhooks/stripe/meta", json=self.checkout_event())
        second = await client.post("/api/webhooks/stripe/meta", json=self.checkout_event())

        assert first.json()["status"] == "credited"
        assert second.json()["status"] == "duplicate"

        events = await client.get("/api/ledger/events", headers=AUTH)
        assert events.json()["events"][0]["reason"] == "stripe_purchase"
        assert events.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_meta_purchase_accepts_legacy_metadata_keys(self, client: AsyncClient):
        event = self.checkout_event(
            metadata={"userId": OWNER, "metaAmount": 4},
            payment_intent={"id": "pi_expanded_1", "object": "payment_intent"},
        )

        response = await client.post("/api/webhooks/stripe/meta", json=event)

        assert response.json()["status"] == "credited"
        balance = await client.get("/api/ledger/balance", headers=AUTH)
        assert balance.json()["balance"] == 4

    @pytest.mark.asyncio
    async def test_subscription_checkout_on_meta_endpoint_is_ignored(self, client: AsyncClient):
        response = await client.post(
            "/api/webhooks/stripe/meta", json=self.checkout_event(mode="subscription")
        )

        assert response.json() == {"received": True, "status": "ignored"}

    @pytest.mark.asyncio
    async def test_subscription_deleted_resolves_owner_by_subscription_id(self, client: AsyncClient):
        await client.post(
            "/api/webhooks/stripe/subscription",
            json={
                "type": "checkout.session.completed",
                "data": {
                    "object": {
                        "mode": "subscription",
                        "client_reference_id": OWNER,
                        "customer": "cus_2",
                        "subscription": "sub_2",
                    }
                },
            },
        )

        deleted = await client.post(
            "/api/webhooks/stripe/subscription",
            json={
                "type": "customer.subscription.deleted",
                "data": {"object": {"id": "sub_2", "customer": "cus_2", "status": "canceled"}},
            },
        )

        assert deleted.json() == {"received": True, "status": "updated", "plan": "free"}
        usage = await client.get("/api/ledger/usage", headers=AUTH)
        assert usage.json()["plan"] == "free"

    @pytest.mark.asyncio
    async def test_subscription_past_due_downgrades(self, client: AsyncClient):
        response = await client.post(
            "/api/webhooks/stripe/subscription",
            json={
                "type": "customer.subscription.updated",
                "data": {
                    "object": {
                        "id": "sub_3",
                        "status": "past_due",
                        "metadata": {"user_id": OWNER},
                    }
                },
            },
        )

        assert response.json()["plan"] == "free"

    @pytest.mark.asyncio
    async def test_unknown_subscription_is_ignored(self, client: AsyncClient):
        response = await client.post(
            "/api/webhooks/stripe/subscription",
            json={
                "type": "customer.subscription.deleted",
                "data": {"object": {"id": "sub_unknown", "customer": "cus_unknown"}},
            },
        )

        assert response.status_code == 200
        assert response.json() == {"received": True, "status": "ignored"}


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

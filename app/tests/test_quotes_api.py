from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.future import select

from app.core.enums import AuditAction, QuoteRequestStatus, QuoteStatus
from app.models.audit import Audit
from app.models.shipment import Shipment


class TestQuoteRequests:

    @pytest.mark.asyncio
    async def test_create_quote_request(self, client, customer, quote_request_payload):
        response = await client.post("/quotes/requests", json=quote_request_payload, headers=customer.headers)

        assert response.status_code == 201
        data = response.json()
        assert data["id"] == "QR-00001"
        assert data["customer_id"] == customer.id
        assert data["status"] == QuoteRequestStatus.AWAITING_QUOTE.value
        assert data["service_type"] == "Air Freight"
        # totals are filled in from the destination splits
        assert data["total_weight"] == 1000.0
        assert data["total_cartons"] == 60

    @pytest.mark.asyncio
    async def test_identifiers_increase(self, create_quote_request):
        first = await create_quote_request()
        second = await create_quote_request()
        assert (first["id"], second["id"]) == ("QR-00001", "QR-00002")

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client, quote_request_payload):
        response = await client.post("/quotes/requests", json=quote_request_payload)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client, quote_request_payload):
        response = await client.post(
            "/quotes/requests",
            json=quote_request_payload,
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_destinations(self, client, customer, quote_request_payload):
        payload = dict(quote_request_payload, destinations=[])
        response = await client.post("/quotes/requests", json=payload, headers=customer.headers)
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_malformed_body_is_400(self, client, customer, quote_request_payload):
        payload = dict(quote_request_payload, cargo_ready_date="not-a-date")
        response = await client.post("/quotes/requests", json=payload, headers=customer.headers)
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_customer_lists_only_own(self, client, create_quote_request, customer, other_customer, staff):
        await create_quote_request(owner=customer)
        await create_quote_request(owner=other_customer)

        own = await client.get("/quotes/requests", headers=customer.headers)
        assert [r["customer_id"] for r in own.json()] == [customer.id]

        everything = await client.get("/quotes/requests", headers=staff.headers)
        assert len(everything.json()) == 2

    @pytest.mark.asyncio
    async def test_get_other_customers_request_denied(self, client, create_quote_request, other_customer):
        created = await create_quote_request()
        response = await client.get(f"/quotes/requests/{created['id']}", headers=other_customer.headers)
        assert response.status_code == 403
        assert response.json()["code"] == "access_denied"

    @pytest.mark.asyncio
    async def test_get_unknown_request(self, client, customer):
        response = await client.get("/quotes/requests/QR-99999", headers=customer.headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Quote request with id QR-99999 not found"

    @pytest.mark.asyncio
    async def test_staff_sets_request_status(self, client, create_quote_request, staff):
        created = await create_quote_request()
        response = await client.patch(
            f"/quotes/requests/{created['id']}/status",
            json={"status": QuoteRequestStatus.QUOTE_REJECTED.value},
            headers=staff.headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == QuoteRequestStatus.QUOTE_REJECTED.value

    @pytest.mark.asyncio
    async def test_customer_cannot_set_request_status(self, client, create_quote_request, customer):
        created = await create_quote_request()
        response = await client.patch(
            f"/quotes/requests/{created['id']}/status",
            json={"status": QuoteRequestStatus.QUOTE_REJECTED.value},
            headers=customer.headers,
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_request_cannot_be_marked_accepted_directly(self, client, create_quote_request, staff):
        created = await create_quote_request()
        response = await client.patch(
            f"/quotes/requests/{created['id']}/status",
            json={"status": QuoteRequestStatus.QUOTE_ACCEPTED.value},
            headers=staff.headers,
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_update_field_rejected(self, client, create_quote_request, staff):
        created = await create_quote_request()
        response = await client.patch(
            f"/quotes/requests/{created['id']}/status",
            json={"status": QuoteRequestStatus.QUOTED.value, "customer_id": 999},
            headers=staff.headers,
        )
        assert response.status_code == 400


class TestQuotes:

    @pytest.mark.asyncio
    async def test_staff_creates_quote(self, client, create_quote_request, create_quote, customer, staff):
        request = await create_quote_request()
        quote = await create_quote(request["id"])

        assert quote["id"] == "Q-00001"
        assert quote["request_id"] == request["id"]
        assert quote["customer_id"] == customer.id
        assert quote["staff_id"] == staff.id
        assert quote["status"] == QuoteStatus.PENDING.value
        assert quote["total_cost"] == 2700.0
        assert quote["cost_breakdown"]["commission"] == 500.0

        refreshed = await client.get(f"/quotes/requests/{request['id']}", headers=customer.headers)
        assert refreshed.json()["status"] == QuoteRequestStatus.QUOTED.value

    @pytest.mark.asyncio
    async def test_default_validity(self, client, create_quote_request, quote_payload, staff):
        request = await create_quote_request()
        payload = quote_payload(request["id"])
        del payload["valid_until"]
        response = await client.post("/quotes", json=payload, headers=staff.headers)

        valid_until = datetime.fromisoformat(response.json()["valid_until"].replace("Z", "+00:00"))
        expected = datetime.now(timezone.utc) + timedelta(days=7)
        assert abs(valid_until - expected) < timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_past_validity_rejected(self, client, create_quote_request, quote_payload, staff):
        request = await create_quote_request()
        payload = quote_payload(
            request["id"], valid_until=(datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        )
        response = await client.post("/quotes", json=payload, headers=staff.headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_customer_cannot_create_quote(self, client, create_quote_request, quote_payload, customer):
        request = await create_quote_request()
        response = await client.post("/quotes", json=quote_payload(request["id"]), headers=customer.headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_quote_for_unknown_request(self, client, quote_payload, staff):
        response = await client.post("/quotes", json=quote_payload("QR-99999"), headers=staff.headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_no_new_quote_after_acceptance(
        self, client, create_quote_request, create_quote, quote_payload, customer, staff
    ):
        request = await create_quote_request()
        quote = await create_quote(request["id"])
        await client.post(f"/quotes/{quote['id']}/accept", headers=customer.headers)

        response = await client.post("/quotes", json=quote_payload(request["id"]), headers=staff.headers)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_list_filters(self, client, create_quote_request, create_quote, customer, other_customer):
        mine = await create_quote_request(owner=customer)
        theirs = await create_quote_request(owner=other_customer)
        await create_quote(mine["id"])
        await create_quote(theirs["id"])

        response = await client.get("/quotes", headers=customer.headers)
        assert [q["request_id"] for q in response.json()] == [mine["id"]]

        response = await client.get(
            "/quotes", params={"status": QuoteStatus.ACCEPTED.value}, headers=customer.headers
        )
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_get_other_customers_quote_denied(
        self, client, create_quote_request, create_quote, other_customer
    ):
        request = await create_quote_request()
        quote = await create_quote(request["id"])
        response = await client.get(f"/quotes/{quote['id']}", headers=other_customer.headers)
        assert response.status_code == 403


class TestQuoteStatus:

    @pytest.mark.asyncio
    async def test_customer_rejects_own_quote(self, client, create_quote_request, create_quote, customer):
        request = await create_quote_request()
        quote = await create_quote(request["id"])

        response = await client.patch(
            f"/quotes/{quote['id']}/status",
            json={"status": QuoteStatus.REJECTED.value},
            headers=customer.headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == QuoteStatus.REJECTED.value

        response = await client.get(f"/quotes/requests/{request['id']}", headers=customer.headers)
        assert response.json()["status"] == QuoteRequestStatus.QUOTE_REJECTED.value

    @pytest.mark.asyncio
    async def test_request_stays_quoted_while_another_quote_is_open(
        self, client, create_quote_request, create_quote, customer
    ):
        request = await create_quote_request()
        first = await create_quote(request["id"])
        await create_quote(request["id"], freight_cost=2200.0)

        response = await client.patch(
            f"/quotes/{first['id']}/status",
            json={"status": QuoteStatus.REJECTED.value},
            headers=customer.headers,
        )
        assert response.status_code == 200

        response = await client.get(f"/quotes/requests/{request['id']}", headers=customer.headers)
        assert response.json()["status"] == QuoteRequestStatus.QUOTED.value

    @pytest.mark.asyncio
    async def test_customer_cannot_finalize(self, client, create_quote_request, create_quote, customer):
        request = await create_quote_request()
        quote = await create_quote(request["id"])

        response = await client.patch(
            f"/quotes/{quote['id']}/status",
            json={"status": QuoteStatus.FINALIZED.value},
            headers=customer.headers,
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_status_accepted_converts(
        self, client, session_factory, create_quote_request, create_quote, customer
    ):
        request = await create_quote_request()
        quote = await create_quote(request["id"])

        response = await client.patch(
            f"/quotes/{quote['id']}/status",
            json={"status": QuoteStatus.ACCEPTED.value},
            headers=customer.headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == QuoteStatus.ACCEPTED.value

        async with session_factory() as session:
            res = await session.execute(select(Shipment).where(Shipment.quote_id == quote["id"]))
            assert len(res.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_accepted_quote_is_frozen(self, client, create_quote_request, create_quote, customer, staff):
        request = await create_quote_request()
        quote = await create_quote(request["id"])
        await client.post(f"/quotes/{quote['id']}/accept", headers=customer.headers)

        response = await client.patch(
            f"/quotes/{quote['id']}/status",
            json={"status": QuoteStatus.REJECTED.value},
            headers=staff.headers,
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_invalid_status_value(self, client, create_quote_request, create_quote, staff):
        request = await create_quote_request()
        quote = await create_quote(request["id"])
        response = await client.patch(
            f"/quotes/{quote['id']}/status", json={"status": "Shipped"}, headers=staff.headers
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_quote(self, client, staff):
        response = await client.patch(
            "/quotes/Q-99999/status", json={"status": QuoteStatus.REJECTED.value}, headers=staff.headers
        )
        assert response.status_code == 404


class TestAudit:

    @pytest.mark.audit
    @pytest.mark.asyncio
    async def test_mutations_are_audited(
        self, client, session_factory, create_quote_request, create_quote, customer, staff
    ):
        request = await create_quote_request()
        quote = await create_quote(request["id"])
        await client.post(f"/quotes/{quote['id']}/accept", headers=customer.headers)

        async with session_factory() as session:
            res = await session.execute(select(Audit).order_by(Audit.id))
            rows = [(a.user_id, a.action, a.resource_id) for a in res.scalars().all()]

        assert rows == [
            (customer.id, AuditAction.CREATE_QUOTE_REQUEST.value, request["id"]),
            (staff.id, AuditAction.CREATE_QUOTE.value, quote["id"]),
            (customer.id, AuditAction.ACCEPT_QUOTE.value, quote["id"]),
        ]

    @pytest.mark.audit
    @pytest.mark.asyncio
    async def test_failed_mutation_not_audited(self, client, session_factory, quote_payload, staff):
        await client.post("/quotes", json=quote_payload("QR-99999"), headers=staff.headers)

        async with session_factory() as session:
            res = await session.execute(select(Audit))
            assert res.scalars().all() == []

    @pytest.mark.audit
    @pytest.mark.asyncio
    async def test_reads_are_not_audited(self, client, session_factory, customer):
        await client.get("/quotes/requests", headers=customer.headers)

        async with session_factory() as session:
            res = await session.execute(select(Audit))
            assert res.scalars().all() == []

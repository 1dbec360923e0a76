"""
Tests for deposit payment initialization.
"""

from decimal import Decimal

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from conftest import make_booking, PRODUCT_CODE
from tourbook.core.config import Settings, get_settings
from tourbook.infrastructure.irembopay import IremboPayClient, get_irembopay_client
from tourbook.models import AuditLog, PaymentStatus
from tourbook.services.catalog_factory import get_product_catalog
from tourbook.services.catalog_service import DatabaseProductCatalog
from tourbook.services.interfaces.static_catalog import StaticProductCatalog
from tourbook.services.payment_service import build_description, calculate_deposit, normalize_phone
from tourbook.main import app


@pytest.mark.parametrize("total, deposit", [
    (200, "100.00"),
    (9070, "4535.00"),
    (2900, "1450.00"),
    ("1234.50", "617.25"),
])
def test_deposit_is_half_of_total(total, deposit):
    assert calculate_deposit(total) == Decimal(deposit)


@pytest.mark.parametrize("raw, expected", [
    ("+250 788 123-456", "+250788123456"),
    ("(0788) 123 456", "0788123456"),
    ("250+788", "250788"),
    (None, ""),
    ("", ""),
])
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_description_mentions_tour_and_amounts():
    text = build_description("Gorilla Trekking", Decimal("9070"), Decimal("4535"))
    assert text == "50% Deposit for tour booking: Gorilla Trekking (Total: $9,070.00, Deposit: $4,535.00)"


@pytest.mark.asyncio
async def test_static_catalog_strips_codes():
    catalog = StaticProductCatalog({"a": " PC-1\t", "b": "  "})
    assert await catalog.resolve("a") == "PC-1"
    assert await catalog.resolve("b") is None
    assert await catalog.resolve("c") is None


@pytest.mark.asyncio
async def test_initialize_payment(client: AsyncClient, test_booking, provider, db_session):
    """Invoice is created for 50% of the total and the booking moves to PROCESSING."""
    response = await client.post("/api/v1/payments/initialize", json={"bookingId": test_booking.id})
    assert response.status_code == 200
    data = response.json()
    assert data["invoiceId"] == "8800000001"
    assert data["paymentUrl"].endswith("/8800000001")

    assert len(provider.requests) == 1
    sent = provider.requests[0]
    assert sent["url"].endswith("/payments/invoices")
    assert sent["headers"]["irembopay-secretkey"] == "test-webhook-secret"
    payload = sent["json"]
    assert payload["transactionId"] == test_booking.id
    assert payload["paymentItems"] == [{"code": PRODUCT_CODE, "quantity": 1, "unitAmount": 100.0}]
    assert payload["customer"]["phoneNumber"] == "+250788123456"
    assert payload["customer"]["email"] == "aline@example.com"
    assert "Kigali City Tour" in payload["description"]
    assert "$200.00" in payload["description"] and "$100.00" in payload["description"]
    assert payload["currency"] == "USD"
    assert payload["expiryAt"]
    assert payload["callbackUrl"] == "http://testserver/api/v1/payments/webhook"
    assert payload["returnUrl"] == f"http://testserver/bookings/{test_booking.id}/success"

    await db_session.refresh(test_booking)
    assert test_booking.payment_status == PaymentStatus.PROCESSING.value
    assert test_booking.payment_intent_id == "8800000001"

    logs = (await db_session.execute(select(AuditLog))).scalars().all()
    assert len(logs) == 1
    assert logs[0].action == "PAYMENT_INITIALIZED"
    assert logs[0].log_metadata["depositAmount"] == "100.00"
    assert logs[0].log_metadata["invoiceId"] == "8800000001"


@pytest.mark.asyncio
async def test_initialize_missing_product_mapping(client: AsyncClient, db_session, unmapped_tour, provider):
    """No product code: descriptive error, no provider call, status untouched."""
    booking = await make_booking(db_session, unmapped_tour)

    response = await client.post("/api/v1/payments/initialize", json={"bookingId": booking.id})
    assert response.status_code == 500
    body = response.json()
    assert "No IremboPay product mapping" in body["error"]
    assert "Lake Kivu Weekend" in body["error"]
    assert provider.requests == []

    await db_session.refresh(booking)
    assert booking.payment_status == PaymentStatus.PENDING.value
    assert booking.payment_intent_id is None


@pytest.mark.asyncio
async def test_initialize_booking_not_found(client: AsyncClient, provider):
    response = await client.post("/api/v1/payments/initialize", json={"bookingId": "missing"})
    assert response.status_code == 404
    assert provider.requests == []


@pytest.mark.asyncio
async def test_initialize_requires_booking_id(client: AsyncClient):
    response = await client.post("/api/v1/payments/initialize", json={"bookingId": ""})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_initialize_without_configuration(client: AsyncClient, test_booking, provider, db_session):
    """Missing secret key fails before the provider is contacted."""
    app.dependency_overrides[get_settings] = lambda: Settings(IREMBO_SECRET_KEY="", APP_URL="")

    response = await client.post("/api/v1/payments/initialize", json={"bookingId": test_booking.id})
    assert response.status_code == 500
    assert response.json()["details"]["missing"] == ["IREMBO_SECRET_KEY", "APP_URL"]
    assert provider.requests == []

    await db_session.refresh(test_booking)
    assert test_booking.payment_status == PaymentStatus.PENDING.value


@pytest.mark.asyncio
async def test_initialize_provider_outage(client: AsyncClient, test_booking, provider, db_session):
    """A 5xx from IremboPay is reported as retryable and the booking is unchanged."""
    provider.status_code = 503

    response = await client.post("/api/v1/payments/initialize", json={"bookingId": test_booking.id})
    assert response.status_code == 500
    body = response.json()
    assert body["details"] == {"providerStatus": 503, "retryable": True}

    await db_session.refresh(test_booking)
    assert test_booking.payment_status == PaymentStatus.PENDING.value
    assert test_booking.payment_intent_id is None


@pytest.mark.asyncio
async def test_initialize_provider_rejects_request(client: AsyncClient, test_booking, provider):
    provider.status_code = 400

    response = await client.post("/api/v1/payments/initialize", json={"bookingId": test_booking.id})
    assert response.status_code == 500
    assert response.json()["details"]["retryable"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_body", [
    [{"invoiceNumber": "8800000001"}],
    "created",
    {"success": True, "data": ["8800000001"]},
    {"success": True},
])
async def test_initialize_malformed_provider_response(client: AsyncClient, test_booking, db_session, provider_body):
    """An unexpected 2xx body is a non-retryable provider error and leaves the booking alone."""
    app.dependency_overrides[get_irembopay_client] = lambda: IremboPayClient(
        get_settings(), transport=httpx.MockTransport(lambda request: httpx.Response(200, json=provider_body))
    )

    response = await client.post("/api/v1/payments/initialize", json={"bookingId": test_booking.id})
    assert response.status_code == 500
    assert response.json()["details"] == {"providerStatus": 200, "retryable": False}

    await db_session.refresh(test_booking)
    assert test_booking.payment_status == PaymentStatus.PENDING.value
    assert test_booking.payment_intent_id is None


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [PaymentStatus.PROCESSING, PaymentStatus.PAID, PaymentStatus.REFUNDED])
async def test_initialize_rejects_live_or_settled_booking(client: AsyncClient, db_session, test_tour, provider, status):
    """A booking is never invoiced while another attempt is live or after it is paid."""
    booking = await make_booking(db_session, test_tour, payment_status=status, payment_intent_id="880000999")

    response = await client.post("/api/v1/payments/initialize", json={"bookingId": booking.id})
    assert response.status_code == 400
    assert response.json()["details"] == {"currentStatus": status.value}
    assert provider.requests == []


@pytest.mark.asyncio
async def test_initialize_after_failed_payment(client: AsyncClient, db_session, test_tour):
    """A failed attempt can be retried; the new invoice replaces the old one."""
    booking = await make_booking(db_session, test_tour, payment_status=PaymentStatus.FAILED, payment_intent_id="old-invoice")

    response = await client.post("/api/v1/payments/initialize", json={"bookingId": booking.id})
    assert response.status_code == 200

    await db_session.refresh(booking)
    assert booking.payment_status == PaymentStatus.PROCESSING.value
    assert booking.payment_intent_id == response.json()["invoiceId"]


@pytest.mark.asyncio
async def test_initialize_with_database_catalog(client: AsyncClient, db_session, test_booking, provider):
    """The database catalog reads the product code stored on the tour row."""
    app.dependency_overrides[get_product_catalog] = lambda: DatabaseProductCatalog(db_session)

    response = await client.post("/api/v1/payments/initialize", json={"bookingId": test_booking.id})
    assert response.status_code == 200
    assert provider.requests[0]["json"]["paymentItems"][0]["code"] == PRODUCT_CODE

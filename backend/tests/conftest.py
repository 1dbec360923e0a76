"""
Pytest fixtures for test database, client, and payment collaborators.

Each test gets a fresh schema on an in-memory SQLite database (or the
database named by TEST_DATABASE_URL). IremboPay and the email API are
replaced by httpx MockTransports so the real clients are exercised without
network access.
"""

import hashlib
import hmac
import json
import os
import time
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Optional

# Must be set before the application settings are first loaded
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./unused-app.db")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("IREMBO_SECRET_KEY", "test-webhook-secret")
os.environ.setdefault("APP_URL", "http://testserver")

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from tourbook.main import app
from tourbook.db.base import Base
from tourbook.db.session import get_db
from tourbook.core.config import get_settings
from tourbook.infrastructure.irembopay import IremboPayClient, get_irembopay_client
from tourbook.infrastructure.email import EmailClient, get_email_client
from tourbook.models import TourPackage, Booking, BookingStatus, PaymentStatus
from tourbook.services.catalog_factory import get_product_catalog
from tourbook.services.interfaces.static_catalog import StaticProductCatalog

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")

WEBHOOK_SECRET = os.environ["IREMBO_SECRET_KEY"]
TOUR_ID = "cm4fogxvw0000mm0fkuq5woap"
PRODUCT_CODE = "PC-74ac3ffe8a"


def sign_webhook(body: bytes, secret: str = WEBHOOK_SECRET, timestamp_ms: Optional[int] = None) -> str:
    """Build an irembopay-signature header for a raw body."""
    ts = str(int(time.time() * 1000) if timestamp_ms is None else timestamp_ms)
    signature = hmac.new(secret.encode(), ts.encode() + b"#" + body, hashlib.sha256).hexdigest()
    return f"t={ts},s={signature}"


def webhook_body(invoice_number: str = "", transaction_id: str = "", payment_status: str = "PAID", **extra) -> bytes:
    data = {
        "invoiceNumber": invoice_number,
        "transactionId": transaction_id,
        "paymentStatus": payment_status,
        "amount": 100,
        "currency": "USD",
        **extra,
    }
    return json.dumps({"success": True, "data": data}).encode()


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    engine_kwargs = {}
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine_kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, **engine_kwargs)
    TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


class ProviderStub:
    """Records invoice requests and answers like the IremboPay sandbox."""

    def __init__(self):
        self.requests: list[dict] = []
        self.status_code = 201
        self.counter = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append({"headers": dict(request.headers), "url": str(request.url), "json": payload})
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json={"success": False, "message": "provider error"})
        self.counter += 1
        invoice_number = f"88000{self.counter:05d}"
        return httpx.Response(
            self.status_code,
            json={
                "success": True,
                "data": {
                    "invoiceNumber": invoice_number,
                    "transactionId": payload["transactionId"],
                    "paymentLinkUrl": f"https://checkout.sandbox.irembopay.com/{invoice_number}",
                    "paymentStatus": "NEW",
                },
            },
        )


class EmailStub:
    def __init__(self):
        self.sent: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.sent.append(json.loads(request.content))
        return httpx.Response(200, json={"id": f"email-{len(self.sent)}"})


@pytest.fixture
def provider() -> ProviderStub:
    return ProviderStub()


@pytest.fixture
def mailer() -> EmailStub:
    return EmailStub()


@pytest.fixture
def catalog() -> StaticProductCatalog:
    return StaticProductCatalog({TOUR_ID: PRODUCT_CODE})


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    provider: ProviderStub,
    mailer: EmailStub,
    catalog: StaticProductCatalog,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB session and external collaborators overridden."""

    async def override_get_db():
        yield db_session

    settings = get_settings()
    email_settings = settings.model_copy(update={"RESEND_API_KEY": "re_test"})

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_product_catalog] = lambda: catalog
    app.dependency_overrides[get_irembopay_client] = lambda: IremboPayClient(
        settings, transport=httpx.MockTransport(provider.handler)
    )
    app.dependency_overrides[get_email_client] = lambda: EmailClient(
        email_settings, transport=httpx.MockTransport(mailer.handler)
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_tour(db_session: AsyncSession) -> TourPackage:
    """A mapped tour priced at 100 per participant."""
    tour = TourPackage(
        id=TOUR_ID,
        slug="kigali-city-tour",
        title="Kigali City Tour",
        description="A day around Kigali",
        price=Decimal("100.00"),
        duration=1,
        location="Kigali",
        irembo_product_code=PRODUCT_CODE,
    )
    db_session.add(tour)
    await db_session.commit()
    await db_session.refresh(tour)
    return tour


@pytest_asyncio.fixture
async def unmapped_tour(db_session: AsyncSession) -> TourPackage:
    """A tour nobody registered on the IremboPay dashboard."""
    tour = TourPackage(
        id="tour-without-product",
        slug="lake-kivu-weekend",
        title="Lake Kivu Weekend",
        price=Decimal("450.00"),
        duration=2,
        location="Rubavu",
    )
    db_session.add(tour)
    await db_session.commit()
    await db_session.refresh(tour)
    return tour


async def make_booking(
    db_session: AsyncSession,
    tour: TourPackage,
    participants: int = 2,
    payment_status: PaymentStatus = PaymentStatus.PENDING,
    payment_intent_id: Optional[str] = None,
) -> Booking:
    booking = Booking(
        tour_package_id=tour.id,
        customer_name="Aline Uwase",
        customer_email="aline@example.com",
        phone="+250 788 123-456",
        country="Rwanda",
        participants=participants,
        start_date=datetime.now(timezone.utc) + timedelta(days=30),
        total_amount=Decimal(tour.price) * participants,
        status=BookingStatus.PENDING.value,
        payment_status=payment_status.value,
        payment_intent_id=payment_intent_id,
    )
    db_session.add(booking)
    await db_session.commit()
    await db_session.refresh(booking)
    return booking


@pytest_asyncio.fixture
async def test_booking(db_session: AsyncSession, test_tour: TourPackage) -> Booking:
    """PENDING booking for two participants: total 200, deposit 100."""
    return await make_booking(db_session, test_tour)


@pytest_asyncio.fixture
async def processing_booking(db_session: AsyncSession, test_tour: TourPackage) -> Booking:
    """Booking with a live invoice, waiting for the webhook."""
    return await make_booking(
        db_session, test_tour,
        payment_status=PaymentStatus.PROCESSING,
        payment_intent_id="880000777",
    )

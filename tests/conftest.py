"""
Pytest configuration and shared fixtures

Provides a temporary SQLite database, a notification runtime wired to a
recording email transport, and a FastAPI test client.
"""
import os

# Settings are read at import time; keep tests away from real services
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_BACKEND", "console")

import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import Generator, Iterator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from minimarket_orders.config import Settings
from minimarket_orders.consumers.runtime import NotificationRuntime
from minimarket_orders.database import build_engine, get_db, init_db
from minimarket_orders.main import app
from minimarket_orders.publishers.job_publisher import JobPublisher
from minimarket_orders.schemas.order import OrderCreate, OrderItemCreate
from minimarket_orders.services.file_reader import RetryingFileReader
from minimarket_orders.services.notification_dispatcher import NotificationDispatcher, OutgoingEmail
from minimarket_orders.services.order_lifecycle import OrderLifecycleManager


class RecordingTransport:
    """Email channel that keeps every message it is asked to send"""

    name = "recording"

    def __init__(self, configured: bool = True):
        self.is_configured = configured
        self.sent: List[OutgoingEmail] = []
        self._lock = threading.Lock()

    def send(self, message: OutgoingEmail) -> bool:
        with self._lock:
            self.sent.append(message)
        return True

    def with_attachments(self) -> List[OutgoingEmail]:
        return [m for m in self.sent if m.attachment is not None]


class RecordingPool:
    """Stand-in for the worker pool that only remembers submissions"""

    def __init__(self):
        self.submitted: List[str] = []

    def submit(self, entry_id: str) -> bool:
        self.submitted.append(entry_id)
        return True


def make_order(shipping_method: str = "delivery", **overrides) -> OrderCreate:
    data = dict(
        customer_email="ana@example.com",
        customer_name="Ana Torres",
        customer_phone="999888777",
        shipping_method=shipping_method,
        shipping_address="Av. Los Olivos 123" if shipping_method == "delivery" else None,
        shipping_city="Lima" if shipping_method == "delivery" else None,
        payment_method="wallet",
        requires_payment_proof=False,
        subtotal=Decimal("19.90"),
        shipping_cost=Decimal("5.00"),
        total=Decimal("24.90"),
        items=[
            OrderItemCreate(
                product_id="p-1", product_name="Arroz 1kg", quantity=2,
                unit_price=Decimal("3.50"), subtotal=Decimal("7.00"),
            ),
            OrderItemCreate(
                product_id="p-2", product_name="Aceite 1L", quantity=1,
                unit_price=Decimal("12.90"), subtotal=Decimal("12.90"),
            ),
        ],
    )
    data.update(overrides)
    return OrderCreate(**data)


def order_payload(shipping_method: str = "delivery", **overrides) -> dict:
    return make_order(shipping_method, **overrides).model_dump(mode="json")


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def recording_pool() -> RecordingPool:
    return RecordingPool()


@pytest.fixture
def manager(db_session, test_settings, recording_pool) -> OrderLifecycleManager:
    return OrderLifecycleManager(db_session, test_settings, publisher=JobPublisher(recording_pool))


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    output_dir = tmp_path / "documents"
    output_dir.mkdir()
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'orders.db'}",
        EMAIL_BACKEND="console",
        DOCUMENT_OUTPUT_DIR=str(output_dir),
        STATIC_ROOT=str(tmp_path),
        CLEANUP_DELAY_SECONDS=0.05,
        FILE_READ_INITIAL_DELAY=0.01,
        NOTIFICATION_WORKERS=2,
        NOTIFICATION_JOB_TIMEOUT=30.0,
        BRAND_COMPANY_NAME="Minimarket Camucha",
    )


def build_runtime(session_factory, settings: Settings, transport: RecordingTransport) -> NotificationRuntime:
    reader = RetryingFileReader(settings.file_read_policy())
    dispatcher = NotificationDispatcher(transport, reader=reader)
    return NotificationRuntime(session_factory, settings, dispatcher=dispatcher)


@pytest.fixture
def runtime(session_factory, test_settings, transport) -> Generator[NotificationRuntime, None, None]:
    runtime = build_runtime(session_factory, test_settings, transport)
    yield runtime
    runtime.stop()


@contextmanager
def serve(session_factory, runtime: NotificationRuntime) -> Iterator[TestClient]:
    """FastAPI test client bound to a database and a notification runtime"""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.runtime = runtime
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
        app.state.runtime = None


@pytest.fixture
def client(session_factory, runtime) -> Generator[TestClient, None, None]:
    with serve(session_factory, runtime) as test_client:
        yield test_client

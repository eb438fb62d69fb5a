import json
import os
from contextlib import contextmanager
from decimal import Decimal
from types import SimpleNamespace

import pytest


def _set_test_env() -> None:
    defaults = {
        "APP_NAME": "DirtTrails Payments Test",
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "INFO",
        "DATABASE_URL": "sqlite://",
        "AUTO_CREATE_TABLES": "false",
        "NOTIFICATION_PROVIDER": "console",
        "TELEGRAM_BOT_TOKEN": "",
        "TELEGRAM_CHAT_IDS": "",
        "MARZPAY_WEBHOOK_SECRET": "",
        "ADMIN_API_KEY": "admin-test-key",
        "DEFAULT_CURRENCY": "UGX",
        "CORS_ORIGINS": "http://localhost:5173,http://localhost:3000",
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


_set_test_env()


from dirttrails.core.database import Base, SessionLocal, engine  # noqa: E402
from dirttrails.models import (  # noqa: E402
    Order,
    OrderItem,
    Payment,
    Service,
    TicketType,
)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def scenario(db):
    """Order O1 for vendor V1: 2 x ticket A (service S1) and 1 x ticket B (service S2), paid via R1."""
    db.add_all(
        [
            Service(id="S1", vendor_id="V1", title="Sipi Falls hike"),
            Service(id="S2", vendor_id="V1", title="Nile sunset cruise"),
        ]
    )
    db.add_all(
        [
            TicketType(id="TA", service_id="S1", name="Adult hike", price=Decimal("15000"), available_count=10),
            TicketType(id="TB", service_id="S2", name="Cruise seat", price=Decimal("20000"), available_count=5),
        ]
    )
    db.add(
        Order(
            id="O1",
            vendor_id="V1",
            user_id="T1",
            currency="UGX",
            status="pending",
            guest_name="Amina K",
            guest_email="amina@example.com",
            guest_phone="+256700000001",
        )
    )
    db.flush()
    db.add_all(
        [
            OrderItem(id="I1", order_id="O1", ticket_type_id="TA", quantity=2, unit_price=Decimal("15000")),
            OrderItem(id="I2", order_id="O1", ticket_type_id="TB", quantity=1, unit_price=Decimal("20000")),
        ]
    )
    db.add(
        Payment(
            id="P1",
            reference="R1",
            order_id="O1",
            amount=Decimal("50000"),
            currency="UGX",
            phone_number="+256700000001",
            status="pending",
        )
    )
    db.commit()
    return SimpleNamespace(order_id="O1", vendor_id="V1", reference="R1", payment_id="P1")


def webhook_body(reference="R1", status="successful", *, nested=False, formatted_amount=None, **extra) -> bytes:
    transaction = {"reference": reference, "status": status, "uuid": "tx-uuid-1", "provider_reference": "MTN123"}
    transaction.update(extra)
    payload: dict = {"event_type": "collection.completed"}
    collection = {"amount": {"formatted": formatted_amount}} if formatted_amount else None
    if nested:
        payload["data"] = {"transaction": transaction}
        if collection:
            payload["data"]["collection"] = collection
    else:
        payload["transaction"] = transaction
        if collection:
            payload["collection"] = collection
    return json.dumps(payload).encode()


class RecordingDispatcher:
    def __init__(self):
        self.outcomes = []

    async def dispatch_all(self, outcomes):
        self.outcomes.extend(outcomes)


@contextmanager
def client_for(db):
    from fastapi.testclient import TestClient

    from dirttrails.core.database import get_db
    from dirttrails.main import app
    from dirttrails.middlewares.rate_limit import limiter
    from dirttrails.services.notifications import get_notification_dispatcher

    dispatcher = RecordingDispatcher()
    limiter.reset()
    app.dependency_overrides.clear()

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    try:
        with TestClient(app) as client:
            client.dispatcher = dispatcher
            yield client
    finally:
        app.dependency_overrides.clear()

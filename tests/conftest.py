import os

# Must be set before the settings singleton is imported
os.environ.setdefault("PAYMENT_STORE", "memory")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from paydash.core.auth import get_current_user
from paydash.models.payment_model import Payment
from paydash.models.user_model import User
from paydash.services.memory_store import InMemoryPaymentStore
from paydash.services.notifier import ChangeNotifier

# Mid-afternoon, server-local, so "today" has room on both sides
NOW = datetime(2026, 10, 18, 15, 30).astimezone()

_counter = {"n": 0}


def make_payment(
    amount: float = 100.0,
    status: str = "success",
    created_at: datetime = None,
    receiver: str = "John Doe",
    method: str = "credit_card",
) -> Payment:
    _counter["n"] += 1
    n = _counter["n"]
    created_at = created_at or NOW - timedelta(hours=1)
    return Payment(
        id=f"pay-{n}",
        amount=amount,
        receiver=receiver,
        status=status,
        method=method,
        transaction_id=f"TXN-TEST-{n}",
        created_at=created_at,
        updated_at=created_at,
    )


class TickingClock:
    """Returns start, start + step, start + 2*step, ..."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


@pytest.fixture
def store():
    return InMemoryPaymentStore()


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def fake_socket():
    def factory():
        socket = AsyncMock()
        socket.sent = []
        socket.send_json.side_effect = lambda message: socket.sent.append(message)
        return socket
    return factory


@pytest.fixture
def test_user():
    return User(_id="user-1", email="ops@test.com", display_name="ops")


@pytest.fixture
def app():
    from main import app as fastapi_app
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app, test_user):
    app.dependency_overrides[get_current_user] = lambda: test_user
    with TestClient(app) as c:
        yield c


@pytest.fixture
def anonymous_client(app):
    with TestClient(app) as c:
        yield c

"""
Pytest configuration for the subscriptions backend.
"""
import os
import tempfile
from datetime import datetime, timezone

# El entorno de prueba se fija antes de importar la app
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["APP_ENV"] = "test"
os.environ["AUTOMATION_TZ"] = "America/Caracas"
os.environ["AUTOMATION_CATCH_UP"] = "false"
os.environ["AUTOMATION_JOB_DISABLED"] = "true"
os.environ["WHATSAPP_DRY_RUN"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AUDIT_LOG_DIR"] = tempfile.mkdtemp(prefix="audit-")
os.environ.setdefault("DATABASE_URL_SYNC", "sqlite://")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app import models  # noqa: F401
from app.core.constants import SubscriptionStatus, UserRole
from app.models.client import Client
from app.models.subscription import Subscription
from app.models.user import User
from app.services.communications_service import CommunicationsService
from app.services.whatsapp_gateway import WhatsAppGateway

# 2026-03-11 11:00 en America/Caracas (UTC-4)
REFERENCE_NOW = datetime(2026, 3, 11, 15, 0, tzinfo=timezone.utc)
TODAY = "2026-03-11"


class FakeGateway(WhatsAppGateway):
    """Gateway configurado que registra los envíos en memoria."""

    def __init__(self, fail_for=None):
        super().__init__(
            account_sid="AC_test", auth_token="token", from_number="+15550000000", dry_run=False
        )
        self.sent = []
        self.fail_for = set(fail_for or [])

    def send_template(self, to, content_sid, variables):
        if to in self.fail_for:
            raise RuntimeError(f"Twilio rechazó el envío a {to}")
        self.sent.append({"to": to, "content_sid": content_sid, "variables": variables})
        return f"SM{len(self.sent):04d}"

    def send_text(self, to, body):
        if to in self.fail_for:
            raise RuntimeError(f"Twilio rechazó el envío a {to}")
        self.sent.append({"to": to, "body": body})
        return f"SM{len(self.sent):04d}"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def communications(session, gateway):
    return CommunicationsService(session, gateway)


@pytest.fixture
def make_client(session):
    counter = {"n": 0}

    def _make(name=None, phone=None, uid=None, is_prospect=False):
        counter["n"] += 1
        client = Client(
            name=name or f"Cliente {counter['n']}",
            phone=phone if phone is not None else f"+58412000{counter['n']:04d}",
            uid=uid,
            is_prospect=is_prospect,
        )
        session.add(client)
        session.commit()
        session.refresh(client)
        return client

    return _make


@pytest.fixture
def make_subscription(session, make_client):
    def _make(cut_date, status=SubscriptionStatus.ACTIVE, amount="$90", plan="Starlink 50GB", client=None):
        client = client or make_client()
        subscription = Subscription(
            client_id=str(client.id),
            start_date="2025-01-01",
            cut_date=cut_date,
            plan=plan,
            amount=amount,
            status=SubscriptionStatus(status).value,
        )
        session.add(subscription)
        session.commit()
        session.refresh(subscription)
        return subscription

    return _make


def make_user(role=UserRole.ADMIN, username="admin"):
    return User(
        email=f"{username}@example.com",
        hashed_password="x",
        username=username,
        full_name=username.title(),
        role=role.value,
    )


@pytest.fixture
def admin_user():
    return make_user()


@pytest.fixture
def auth_state(admin_user):
    """Usuario devuelto por current_active_user; los tests pueden reemplazarlo."""
    return {"user": admin_user}


@pytest.fixture
def api_client(session, auth_state):
    """TestClient con la sesión de prueba y un admin autenticado."""
    from fastapi.testclient import TestClient

    from app.core.users import current_active_user
    from app.db.engine_sync import get_sync_session
    from app.main import app

    def _override_session():
        yield session

    app.dependency_overrides[get_sync_session] = _override_session
    app.dependency_overrides[current_active_user] = lambda: auth_state["user"]

    yield TestClient(app)
    app.dependency_overrides.clear()

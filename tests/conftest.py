import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import anyio
import httpx
from sqlalchemy.orm import sessionmaker

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", "sqlite:///" + str(BASE_DIR / "test.db"))
os.environ.setdefault("OTP_STORE_BACKEND", "sql")
os.environ.setdefault("OTP_EXPIRATION_MINUTES", "10")
os.environ.setdefault("OTP_MAX_ATTEMPTS", "3")
os.environ.setdefault("SMS_DRY_RUN", "true")
os.environ.pop("REDIS_URL", None)

from app.core.config import ProviderCredentials, get_settings
from app.core.db import build_engine
from app.core.dependencies import get_otp_service
from app.models import Base
from app.services import Cascade, InMemoryOTPStore, OTPService, SQLOTPStore
from app.services.sms_providers import DeliveryResult
from app.main import app

get_settings.cache_clear()

_db_path = BASE_DIR / "test.db"


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class StubProvider:
    """Provider double with a scripted outcome; records every call."""

    def __init__(self, name: str, *, delivered: bool = True, error: str = "gateway down", timeout: float = 10.0):
        self.name = name
        self.delivered = delivered
        self.error = error
        self.timeout = timeout
        self.calls: list[dict] = []
        self.closed = False

    def send(self, *, phone: str, message: str, timeout: float | None = None) -> DeliveryResult:
        self.calls.append({"phone": phone, "message": message, "timeout": timeout})
        if self.delivered:
            return DeliveryResult(provider=self.name, delivered=True, provider_status="accepted")
        return DeliveryResult(provider=self.name, delivered=False, error=self.error)

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture(scope="session")
def engine():
    engine = build_engine(get_settings().DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if _db_path.exists():
        _db_path.unlink()


@pytest.fixture(scope="session")
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def _clear_otp_records(session_factory) -> None:
    with session_factory() as session:
        session.execute(Base.metadata.tables["otp_records"].delete())
        session.commit()


@pytest.fixture()
def sql_store(session_factory, clock):
    yield SQLOTPStore(session_factory, clock=clock)
    _clear_otp_records(session_factory)


@pytest.fixture()
def memory_store(clock):
    return InMemoryOTPStore(clock=clock)


@pytest.fixture(params=["memory", "sql"])
def store(request, clock):
    if request.param == "memory":
        yield InMemoryOTPStore(clock=clock)
        return
    factory = request.getfixturevalue("session_factory")
    yield SQLOTPStore(factory, clock=clock)
    _clear_otp_records(factory)


@pytest.fixture()
def credentials():
    return ProviderCredentials(
        url="https://gateway.test/send",
        sender="MtaaSuite",
        username="key",
        secret="secret",
        timeout=10.0,
    )


def make_service(store, providers) -> OTPService:
    return OTPService(store=store, cascade=Cascade(providers), settings=get_settings())


@pytest.fixture()
def client(sql_store):
    providers = [StubProvider("beem", delivered=False), StubProvider("tigo")]
    service = make_service(sql_store, providers)
    app.dependency_overrides[get_otp_service] = lambda: service

    class _SyncASGIClient:
        def __init__(self, fastapi_app):
            self._client = httpx.AsyncClient(
                transport=httpx.ASGITransport(app=fastapi_app),
                base_url="http://testserver",
            )
            self.service = service
            self.providers = providers

        def request(self, method: str, url: str, **kwargs):
            async def _do_request():
                return await self._client.request(method, url, **kwargs)

            return anyio.run(_do_request)

        def get(self, url: str, **kwargs):
            return self.request("GET", url, **kwargs)

        def post(self, url: str, **kwargs):
            return self.request("POST", url, **kwargs)

        def close(self):
            async def _do_close():
                await self._client.aclose()

            anyio.run(_do_close)

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            self.close()

    with _SyncASGIClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()

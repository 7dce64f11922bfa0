import asyncio
import inspect
import os
import sys
import tempfile
from pathlib import Path

# Settings are read at import time, so the environment is prepared first
_test_upload_dir = tempfile.mkdtemp(prefix="heritage_test_")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-access-secret-key-for-testing-only-0001"
os.environ["REFRESH_SECRET"] = "test-refresh-secret-key-for-testing-only-0002"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["IMAGE_STORAGE"] = "local"
os.environ["UPLOAD_DIR"] = _test_upload_dir
os.environ["SECURITY_ALERT_WEBHOOK"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["ENVIRONMENT"] = "test"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.main import app  # noqa: E402
from app.infrastructure.database import Base, SessionLocal, engine  # noqa: E402
from app.interfaces.deps import get_counter_store  # noqa: E402

STRONG_PASSWORD = "Str0ng!Pass"


@pytest.fixture(autouse=True)
def reset_state():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    asyncio.run(get_counter_store().clear())
    app.dependency_overrides.clear()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def register(client, email, password=STRONG_PASSWORD, role=None):
    body = {"email": email, "password": password}
    if role:
        body["role"] = role
    return client.post("/register", json=body)


def login(client, email, password=STRONG_PASSWORD, headers=None):
    return client.post("/login", json={"email": email, "password": password}, headers=headers)


def auth_headers(client, email, role=None):
    """Register, log in and return bearer headers for the new account."""
    assert register(client, email, role=role).status_code == 201
    response = login(client, email)
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")

import os

os.environ.setdefault("MASTER_KEY", "test-master-key")
os.environ.setdefault("QR_PRINT_TERMINAL", "false")
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.context import build_context
from app.main import create_app

from tests.fakes import MASTER_KEY, FakeClock, FakeSessionClient


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        MASTER_KEY=MASTER_KEY,
        API_KEYS_FILE=str(tmp_path / "api-keys.json"),
        SESSION_DIR=str(tmp_path / ".wwebjs_auth"),
        CACHE_DIR=str(tmp_path / ".wwebjs_cache"),
        QR_PRINT_TERMINAL=False,
        CORS_ORIGIN="*",
    )


@pytest.fixture
def fake_client():
    return FakeSessionClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def context(settings, fake_client, clock):
    return build_context(settings, client=fake_client, clock=clock)


@pytest.fixture
def client(context):
    """Test client without lifespan, so no session is started"""
    return TestClient(create_app(context))


@pytest.fixture
def base_url():
    return "/api"


@pytest.fixture
def api_key(context):
    return context.keys.generate(MASTER_KEY)


@pytest.fixture
def auth_headers(api_key):
    return {"x-api-key": api_key}


@pytest.fixture
def ready(context):
    context.controller.state.ready = True
    return context

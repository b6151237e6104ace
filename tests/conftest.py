import os
import sys
import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="bookchat-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT / 'bookchat.db'}"
os.environ["UPLOAD_DIR"] = str(_TEST_ROOT / "uploads")
os.environ["GENAI_BACKEND"] = "mock"
os.environ["AUTH_REQUIRED"] = "false"
os.environ["APP_ENV"] = "test"
os.environ.pop("RATE_LIMIT_QPS", None)
os.environ.pop("GEMINI_API_KEY", None)

from fastapi.testclient import TestClient  # noqa: E402


@pytest.fixture
def app():
    from apps.api.db.base import Base
    from apps.api.db.session import engine
    from apps.api.main import app as api_app

    Base.metadata.drop_all(engine)
    yield api_app
    api_app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client

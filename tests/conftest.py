"""Pytest configuration helpers.

Puts ``backend/`` on ``sys.path`` so tests can import the ``castforge``
package regardless of how pytest is invoked, and points the app at a
throwaway SQLite database with Redis publishing disabled. The environment
is set before any ``castforge`` import because settings are cached.
"""
import os
import sys
import tempfile

import httpx
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
BACKEND = os.path.join(ROOT, "backend")
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

_DB_DIR = tempfile.mkdtemp(prefix="castforge-tests-")
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["REDIS_URL"] = ""
os.environ["AUTO_CREATE_TABLES"] = "true"
for _name in (
    "JOGGAI_API_KEY", "KIE_API_KEY", "TAVUS_API_KEY", "REPLICATE_API_KEY",
    "ELEVENLABS_API_KEY", "LLM_API_KEY", "LLM_API_KEYS", "WEBHOOK_ENABLED", "WEBHOOK_URL",
):
    os.environ.pop(_name, None)

from castforge.config import Settings  # noqa: E402


def make_settings(**overrides) -> Settings:
    """Settings for one test; keyword overrides win over the environment."""
    base = {"POLL_INTERVAL_SECONDS": 0.0, "LLM_MAX_RETRIES": 3}
    base.update(overrides)
    return Settings(_env_file=None, **base)


def mock_client(handler) -> httpx.AsyncClient:
    """httpx client whose requests are answered by ``handler(request)``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def settings() -> Settings:
    return make_settings(
        JOGGAI_API_KEY="env-jogg-key",
        KIE_API_KEY="env-kie-key",
        TAVUS_API_KEY="env-tavus-key",
        REPLICATE_API_KEY="env-replicate-key",
        ELEVENLABS_API_KEY="env-eleven-key",
    )

import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from feedrank.feed import container
from feedrank.feed.infra.signal_store import reset_memory_state
from feedrank.infra import postgres
from feedrank.main import app
from feedrank.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from feedrank.infra.redis import redis_client, set_redis_client

	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest_asyncio.fixture(autouse=True)
async def clear_memory_store():
	await reset_memory_state()
	container.reset_container()
	yield
	await reset_memory_state()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Dev mode accepts X-User-Id headers; the memory backend avoids Postgres."""
	original_env = settings.environment
	original_backend = settings.feed_signal_backend
	settings.environment = "dev"
	settings.feed_signal_backend = "memory"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.feed_signal_backend = original_backend


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client

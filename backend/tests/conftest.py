import sys
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from pathlib import Path

import pytest
import pytest_asyncio
import ulid
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from studio.container import reset_container
from studio.domain.access.memberships import MembershipStore
from studio.domain.access.models import Principal, Role
from studio.domain.access.profiles import ProfileStore
from studio.domain.schedule.models import ClassTemplate
from studio.domain.schedule.repository import ClassTemplateRepository
from studio.infra import postgres
from studio.infra.memory import reset_memory_state
from studio.main import app
from studio.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from studio.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)
	monkeypatch.setattr(postgres, "_memory_only", True)
	postgres.set_pool(None)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Most API tests authenticate via X-User-Id headers, which are only accepted in dev mode."""
	original_env = settings.environment
	settings.environment = "dev"
	try:
		yield
	finally:
		settings.environment = original_env


@pytest_asyncio.fixture(autouse=True)
async def reset_state():
	reset_memory_state()
	await reset_container()
	yield
	await reset_container()
	reset_memory_state()


@dataclass
class Seed:
	"""Shortcuts for putting profiles, memberships and classes into the store."""

	profiles: ProfileStore
	memberships: MembershipStore
	templates: ClassTemplateRepository

	async def admin(self, user_id: str = "admin-1", full_name: str = "Ada Admin") -> Principal:
		await self.profiles.create_profile(full_name=full_name, role=Role.ADMIN, user_id=user_id)
		return Principal(user_id=user_id, role=Role.ADMIN)

	async def member(
		self,
		user_id: str = "member-1",
		full_name: str | None = None,
		*,
		membership: bool = True,
		start: date = date(2024, 1, 1),
		months: int = 24,
	) -> Principal:
		await self.profiles.create_profile(full_name=full_name or f"Member {user_id}", user_id=user_id)
		if membership:
			await self.memberships.grant(user_id, start=start, months=months)
		return Principal(user_id=user_id, role=Role.MEMBER)

	async def template(
		self,
		*,
		name: str = "Reformer Pilates",
		instructor: str = "Lucia",
		day_of_week: int = 1,
		start_time: time = time(9, 0),
		end_time: time = time(10, 0),
		max_capacity: int = 2,
		is_active: bool = True,
	) -> ClassTemplate:
		return await self.templates.insert(
			ClassTemplate(
				id=str(ulid.new()),
				name=name,
				instructor=instructor,
				day_of_week=day_of_week,
				start_time=start_time,
				end_time=end_time,
				max_capacity=max_capacity,
				is_active=is_active,
				created_at=datetime.now(timezone.utc),
			)
		)


@pytest.fixture
def seed() -> Seed:
	return Seed(ProfileStore(), MembershipStore(), ClassTemplateRepository())


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client

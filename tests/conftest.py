from collections.abc import AsyncGenerator

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from clawhost.config import Settings
from clawhost.deploy import DeploymentOrchestrator, ProviderBackend, ProvisionedResource
from clawhost.models import Base

DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
def settings() -> Settings:
    """Settings with credentials for every provider and no deployment delays."""
    return Settings(
        _env_file=None,
        database_url=DATABASE_URL,
        deploy_provider="fly",
        fly_api_token="fly-test-token",
        fly_org_slug="test-org",
        render_api_key="rnd_test_key",
        render_owner_id="tea-owner",
        railway_api_token="railway-test-token",
        railway_project_id="proj-1",
        railway_environment_id="env-1",
        poll_interval=0,
        dns_propagation_delay=0,
        health_warmup_delay=0,
        render_initial_delay=0,
        machine_start_timeout=1,
        deploy_timeout=1,
    )


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    # One shared connection so every session sees the same in-memory database
    engine = create_async_engine(
        DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


class FakeBackend(ProviderBackend):
    """In-memory backend recording every call made by the orchestrator."""

    name = "fly"

    def __init__(self, settings: Settings, access_url: str = "https://gateway.test"):
        super().__init__(settings)
        self.access_url = access_url
        self.calls: list[tuple] = []
        self.requests = []
        self.fail_on: dict[str, Exception] = {}
        self.running = True
        self._created = 0

    async def _record(self, operation: str, *args):
        self.calls.append((operation, *args))
        if operation in self.fail_on:
            raise self.fail_on[operation]

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    def resource_name(self, user_id: str) -> str:
        return f"openclaw-{user_id}"

    async def prepare(self, name):
        await self._record("prepare", name)
        return name

    async def provision(self, request):
        await self._record("provision", request.name)
        self.requests.append(request)
        self._created += 1
        return ProvisionedResource(
            resource_id=f"machine-{self._created}", resource_name=request.name
        )

    async def wait_until_live(self, resource):
        await self._record("wait_until_live", resource.resource_id)
        resource.access_url = self.access_url
        return resource

    async def destroy(self, instance):
        await self._record("destroy", instance.container_name)

    async def stop(self, instance):
        await self._record("stop", instance.container_id)

    async def start(self, instance):
        await self._record("start", instance.container_id)

    async def restart(self, instance):
        await self._record("restart", instance.container_id)

    async def is_running(self, instance):
        await self._record("is_running", instance.container_id)
        return self.running

    async def get_logs(self, instance, tail=100):
        await self._record("get_logs", tail)
        return "gateway listening on 18789"


@pytest.fixture
def fake_backend(settings) -> FakeBackend:
    return FakeBackend(settings)


@pytest.fixture
def orchestrator(session_maker, settings, fake_backend) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(session_maker, settings, backend=fake_backend)

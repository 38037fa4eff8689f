"""
Test Configuration
==================

Pytest fixtures for SiteGate tests: an in-memory workflow container with
a controllable clock and a seeded site.
"""

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment
os.environ["ENVIRONMENT"] = "testing"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-sitegate-tests"

from services.visitor.container import WorkflowContainer, build_container  # noqa: E402
from services.visitor.models import (  # noqa: E402
    InductionRecord,
    Member,
    Site,
    Visit,
    VisitCreate,
    Visitor,
    VisitorType,
)
from services.visitor.store import InMemoryChangeFeed, InMemoryStore  # noqa: E402
from shared.auth import Actor, Role, create_access_token  # noqa: E402
from shared.config.settings import WorkflowSettings  # noqa: E402


START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@dataclass
class SeedData:
    """Reference records for one site."""

    site: Site
    host: Member
    backup: Member
    reception: Member
    admin: Member
    visitor: Visitor
    staff_visitor: Visitor
    other_site: Site

    @staticmethod
    def actor(member: Member) -> Actor:
        return Actor(id=member.id, role=member.role, site_id=member.site_id, name=member.name)

    @property
    def host_actor(self) -> Actor:
        return self.actor(self.host)

    @property
    def backup_actor(self) -> Actor:
        return self.actor(self.backup)

    @property
    def reception_actor(self) -> Actor:
        return self.actor(self.reception)

    @property
    def admin_actor(self) -> Actor:
        return self.actor(self.admin)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def feed() -> InMemoryChangeFeed:
    return InMemoryChangeFeed()


@pytest.fixture
def store(feed: InMemoryChangeFeed) -> InMemoryStore:
    return InMemoryStore(feed)


@pytest.fixture
def workflow_settings() -> WorkflowSettings:
    return WorkflowSettings(
        escalation_poll_seconds=0.01,
        store_timeout_seconds=1.0,
        default_escalation_minutes=10,
    )


@pytest_asyncio.fixture
async def container(
    store: InMemoryStore,
    feed: InMemoryChangeFeed,
    workflow_settings: WorkflowSettings,
    clock: FakeClock,
) -> AsyncGenerator[WorkflowContainer, None]:
    """Workflow services over the in-memory store."""
    built = build_container(store, feed, workflow_settings, clock=clock)
    yield built
    await built.close()


@pytest_asyncio.fixture
async def seed(store: InMemoryStore, clock: FakeClock) -> SeedData:
    """One site with a host, a backup host, reception, an admin and two visitors."""
    site = await store.insert(
        Site(name="Harbour Works", site_code="HBW", hs_content_version=2, created_at=clock())
    )
    other_site = await store.insert(Site(name="Inland Depot", site_code="IND", created_at=clock()))

    def member(name: str, role: Role) -> Member:
        return Member(name=name, site_id=site.id, role=role, email=f"{name.lower()}@example.com")

    host = await store.insert(member("Hana", Role.HOST))
    backup = await store.insert(member("Bram", Role.HOST))
    reception = await store.insert(member("Rosa", Role.RECEPTION))
    admin = await store.insert(member("Ade", Role.SITE_ADMIN))

    visitor = await store.insert(
        Visitor(name="Vera Contractor", email="vera@contractor.example", company="Acme Scaffolding")
    )
    staff_visitor = await store.insert(
        Visitor(
            name="Sam Staff",
            email="sam@sitegate.example",
            visitor_type=VisitorType.INTERNAL_STAFF,
        )
    )
    return SeedData(
        site=site,
        host=host,
        backup=backup,
        reception=reception,
        admin=admin,
        visitor=visitor,
        staff_visitor=staff_visitor,
        other_site=other_site,
    )


ScheduleVisit = Callable[..., Awaitable[Visit]]


@pytest.fixture
def schedule_visit(
    container: WorkflowContainer,
    store: InMemoryStore,
    seed: SeedData,
    clock: FakeClock,
) -> ScheduleVisit:
    """
    Schedule a visit for today, inducted by default so it can check in.

    Keyword arguments: visitor, backup (bool), inducted (bool), documents.
    """

    async def _schedule(
        visitor: Visitor | None = None,
        backup: bool = True,
        inducted: bool = True,
        documents: list[dict[str, str]] | None = None,
        hours: float = 2,
    ) -> Visit:
        visitor = visitor or seed.visitor
        request = VisitCreate(
            visitor_id=visitor.id,
            backup_user_id=seed.backup.id if backup else None,
            purpose="Scaffold inspection",
            planned_arrival=clock() + timedelta(minutes=5),
            planned_departure=clock() + timedelta(hours=hours),
            documents=documents or [],
        )
        visit = await container.visits.schedule(seed.host_actor, request)
        if inducted:
            await store.insert(
                InductionRecord(
                    visitor_id=visitor.id,
                    site_id=seed.site.id,
                    content_version=seed.site.hs_content_version,
                    completed_at=clock() - timedelta(days=30),
                )
            )
        return visit

    return _schedule


def token_for(member: Member) -> str:
    return create_access_token(
        {"sub": member.id, "role": member.role, "site_id": member.site_id, "name": member.name}
    )


@pytest_asyncio.fixture
async def api_client(container: WorkflowContainer) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the visitor service bound to the test container."""
    from services.visitor.main import app

    app.state.container = container
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
def auth_headers() -> Callable[[Member], dict[str, str]]:
    """Bearer headers for a seeded member."""

    def _headers(member: Member) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_for(member)}"}

    return _headers

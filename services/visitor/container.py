"""
Workflow Container
==================

Wires the store, change feed and workflow services together. The
application builds one container at startup; tests build their own over
an in-memory store and a controllable clock.

Version: 0.1.0
"""

from dataclasses import dataclass

from fastapi import Request

from services.visitor.models.base import utcnow
from services.visitor.services import (
    AccessDecisionEngine,
    AuditService,
    DenyListService,
    EscalationScheduler,
    EvacuationGate,
    InductionService,
    NotificationService,
    PreApprovalService,
    VisitQueries,
    VisitStateMachine,
)
from services.visitor.services.guards import Clock
from services.visitor.store import (
    ChangeFeed,
    InMemoryChangeFeed,
    InMemoryStore,
    RedisChangeFeed,
    SqlStore,
    Store,
)
from shared.config.settings import ChangeFeedBackend, Settings, StoreBackend, WorkflowSettings
from shared.database.postgres import PostgresClient
from shared.database.redis import RedisClient
from shared.logging import get_logger


logger = get_logger(__name__)


@dataclass
class WorkflowContainer:
    """Every workflow collaborator, built once per application."""

    store: Store
    feed: ChangeFeed
    audit: AuditService
    notifications: NotificationService
    access: AccessDecisionEngine
    induction: InductionService
    gate: EvacuationGate
    visits: VisitStateMachine
    deny_list: DenyListService
    pre_approvals: PreApprovalService
    escalation: EscalationScheduler
    queries: VisitQueries

    async def close(self) -> None:
        await self.escalation.stop()
        await self.store.close()
        await self.feed.close()


def build_container(
    store: Store,
    feed: ChangeFeed,
    workflow: WorkflowSettings | None = None,
    clock: Clock = utcnow,
) -> WorkflowContainer:
    """Assemble the workflow services over a store and feed."""
    workflow = workflow or WorkflowSettings()

    audit = AuditService(store, clock=clock)
    notifications = NotificationService(store, audit, clock=clock)
    access = AccessDecisionEngine(store, notifications, audit, clock=clock)
    induction = InductionService(
        store,
        audit,
        validity_days=workflow.induction_validity_days,
        clock=clock,
    )
    gate = EvacuationGate(
        store,
        notifications,
        audit,
        accounting_retries=workflow.evacuation_accounting_retries,
        clock=clock,
    )

    return WorkflowContainer(
        store=store,
        feed=feed,
        audit=audit,
        notifications=notifications,
        access=access,
        induction=induction,
        gate=gate,
        visits=VisitStateMachine(store, access, gate, induction, notifications, audit, clock=clock),
        deny_list=DenyListService(store, audit, clock=clock),
        pre_approvals=PreApprovalService(
            store,
            notifications,
            audit,
            default_days=workflow.default_pre_approval_days,
            clock=clock,
        ),
        escalation=EscalationScheduler(
            store,
            notifications,
            audit,
            poll_seconds=workflow.escalation_poll_seconds,
            store_timeout_seconds=workflow.store_timeout_seconds,
            default_window_minutes=workflow.default_escalation_minutes,
            clock=clock,
        ),
        queries=VisitQueries(store, clock=clock),
    )


async def create_container(settings: Settings) -> WorkflowContainer:
    """Build the container for the configured backends."""
    workflow = settings.workflow

    feed: ChangeFeed
    if workflow.change_feed_backend == ChangeFeedBackend.REDIS:
        feed = RedisChangeFeed(RedisClient.get_client(), settings.redis.channel_prefix)
    else:
        feed = InMemoryChangeFeed()

    store: Store
    if workflow.store_backend == StoreBackend.POSTGRES:
        await PostgresClient.create_schema()
        store = SqlStore(PostgresClient.get_engine(), feed)
    else:
        store = InMemoryStore(feed)

    logger.info(
        "workflow_container_built",
        store_backend=workflow.store_backend.value,
        change_feed_backend=workflow.change_feed_backend.value,
    )
    return build_container(store, feed, workflow)


def get_container(request: Request) -> WorkflowContainer:
    """FastAPI dependency returning the application's container."""
    return request.app.state.container

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ...database import get_db
from ...persistence.sql import SqlEventRepository, SqlIntegrationRepository, SqlWorkflowRepository
from ...services.integration_service import IntegrationService
from ...workflows.events import EventRecorder
from ...workflows.executor import StepExecutor
from ...workflows.orchestrator import WorkflowOrchestrator


def get_integration_service(
    request: Request,
    db: AsyncSession = Depends(get_db)
) -> IntegrationService:
    """Wire a service around this request's session and the process-wide collaborators"""
    state = request.app.state
    settings = state.settings

    integrations = SqlIntegrationRepository(db)
    workflows = SqlWorkflowRepository(db)
    events = EventRecorder(SqlEventRepository(db), state.broadcaster)

    executor = StepExecutor(
        registry=state.registry,
        integrations=integrations,
        notifier=state.notifier,
        http_client=state.http_client,
        locks=state.locks,
        max_condition_depth=settings.workflow_max_condition_depth
    )
    orchestrator = WorkflowOrchestrator(
        executor,
        events,
        workflows=workflows,
        step_timeout=settings.workflow_step_timeout,
        retry_max_delay=settings.workflow_retry_max_delay
    )

    return IntegrationService(
        registry=state.registry,
        integrations=integrations,
        workflows=workflows,
        events=events,
        metrics=state.metrics,
        orchestrator=orchestrator
    )

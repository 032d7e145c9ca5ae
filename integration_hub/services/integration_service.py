from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..integrations.base import (
    IntegrationError,
    IntegrationStatus,
    ProviderNotSupportedError,
    ValidationError,
    mask_sensitive_data,
)
from ..integrations.registry import ProviderRegistry
from ..persistence.repository import IntegrationRepository, WorkflowRepository
from ..utils.logging import get_logger
from ..workflows.errors import WorkflowError
from ..workflows.events import EventRecorder
from ..workflows.models import (
    EventSeverity,
    Integration,
    IntegrationEvent,
    IntegrationWorkflow,
    TestResult,
    WorkflowRunResult,
    WorkflowStatus,
)
from ..workflows.orchestrator import WorkflowOrchestrator
from .metrics import CallTimer, MetricsRecorder
from .templates import INTEGRATION_TEMPLATES, IntegrationTemplate

logger = get_logger(__name__)

ANALYTICS_PERIODS = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
}


class RecordNotFoundError(LookupError):
    """Requested integration, workflow or event does not exist."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class WorkflowInactiveError(WorkflowError):
    """Inactive workflows cannot be executed."""
    pass


class IntegrationService:
    """Facade over the provider registry, workflow engine, events and metrics.

    Built per request with the repositories bound to the request's database
    session; the registry, metrics recorder and orchestrator collaborators
    live for the whole process.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        integrations: IntegrationRepository,
        workflows: WorkflowRepository,
        events: EventRecorder,
        metrics: MetricsRecorder,
        orchestrator: WorkflowOrchestrator
    ):
        self.registry = registry
        self.integrations = integrations
        self.workflows = workflows
        self.events = events
        self.metrics = metrics
        self.orchestrator = orchestrator

    def get_integration_templates(self) -> List[IntegrationTemplate]:
        return list(INTEGRATION_TEMPLATES)

    # Integrations

    def sensitive_keys(self, integration: Integration) -> List[str]:
        """Config keys that hold credentials; every key when the provider is unknown."""
        if integration.provider in self.registry:
            return list(self.registry.resolve(integration.provider).sensitive_keys)
        return list(integration.config)

    async def list_integrations(
        self,
        organization_id: Optional[str] = None,
        provider: Optional[str] = None
    ) -> List[Integration]:
        return await self.integrations.list(organization_id=organization_id, provider=provider)

    async def get_integration(self, integration_id: str) -> Integration:
        integration = await self.integrations.get(integration_id)
        if integration is None:
            raise RecordNotFoundError("Integration", integration_id)
        return integration

    async def create_integration(
        self,
        name: str,
        provider: str,
        config: Dict[str, Any],
        type: str = "custom",
        organization_id: Optional[str] = None
    ) -> Integration:
        """Validate the provider config and store a new integration.

        Raises:
            ProviderNotSupportedError: no adapter for ``provider``.
            ValidationError: the adapter rejected the config; the messages
                are in ``response_data["errors"]``.
        """
        adapter = self.registry.resolve(provider)
        errors = adapter.validate_config(config)
        if errors:
            raise ValidationError(
                f"Invalid {provider} configuration: {'; '.join(errors)}",
                adapter.name,
                status_code=400,
                response_data={"errors": errors}
            )

        integration = Integration(
            name=name,
            provider=adapter.provider,
            type=type,
            config=config,
            organization_id=organization_id,
            status=IntegrationStatus.INACTIVE,
        )
        await self.integrations.add(integration)
        logger.info(
            f"Created {provider} integration {integration.id} with config "
            f"{mask_sensitive_data(config, adapter.sensitive_keys)}"
        )
        return integration

    async def deactivate_integration(self, integration_id: str) -> Integration:
        integration = await self.get_integration(integration_id)
        updated = integration.model_copy(update={
            "status": IntegrationStatus.INACTIVE,
            "updated_at": datetime.now(timezone.utc),
        })
        await self.integrations.save(updated)
        logger.info(f"Deactivated integration {integration_id}")
        return updated

    async def test_connection(self, integration: Integration) -> TestResult:
        """Probe the provider and fold the outcome into the integration's status."""
        timer = CallTimer()
        status_code = None
        error = None

        try:
            adapter = self.registry.resolve(integration.provider)
            success = await adapter.test_connection(integration.config)
            status_code = 200 if success else 400
            if not success:
                error = "Connection test failed"
        except ProviderNotSupportedError as e:
            success = False
            error = str(e)
        except IntegrationError as e:
            success = False
            status_code = e.status_code
            error = str(e)
        except Exception as e:
            logger.error(f"Connection test for integration {integration.id} raised: {str(e)}")
            success = False
            error = str(e)

        result = TestResult(
            success=success,
            response_time=timer.elapsed_ms,
            status_code=status_code,
            error=error,
        )
        self.metrics.record_metric(timer.sample(error=not success, integration_id=integration.id))

        now = datetime.now(timezone.utc)
        if success:
            updates = {"status": IntegrationStatus.ACTIVE, "last_sync_at": now, "updated_at": now}
        else:
            updates = {
                "status": IntegrationStatus.ERROR,
                "last_error_at": now,
                "last_error_message": error,
                "updated_at": now,
            }
        await self.integrations.save(integration.model_copy(update=updates))

        if not success:
            await self.record_integration_event(IntegrationEvent(
                integration_id=integration.id,
                type="connection_error",
                severity=EventSeverity.HIGH,
                title="Connection Test Failed",
                description=error or "",
                data={"statusCode": status_code, "responseTime": result.response_time},
            ))

        logger.info(
            f"Connection test for integration {integration.id}: "
            f"{'ok' if success else 'failed'} in {result.response_time:.1f}ms"
        )
        return result

    async def validate_integration_config(self, provider: str, config: Dict[str, Any]) -> List[str]:
        try:
            adapter = self.registry.resolve(provider)
        except ProviderNotSupportedError as e:
            return [str(e)]
        return adapter.validate_config(config)

    async def get_schema(self, integration_id: str) -> Any:
        integration = await self.get_integration(integration_id)
        adapter = self.registry.resolve(integration.provider)
        return await adapter.get_schema(integration.config)

    # Workflows

    async def list_workflows(self, organization_id: Optional[str] = None) -> List[IntegrationWorkflow]:
        return await self.workflows.list(organization_id=organization_id)

    async def get_workflow(self, workflow_id: str) -> IntegrationWorkflow:
        workflow = await self.workflows.get(workflow_id)
        if workflow is None:
            raise RecordNotFoundError("Workflow", workflow_id)
        return workflow

    async def create_workflow(self, workflow: IntegrationWorkflow) -> IntegrationWorkflow:
        await self.workflows.add(workflow)
        logger.info(f"Created workflow {workflow.id} with {len(workflow.steps)} step(s)")
        return workflow

    async def execute_workflow(self, workflow_id: str, data: Any = None) -> WorkflowRunResult:
        workflow = await self.get_workflow(workflow_id)
        if workflow.status == WorkflowStatus.INACTIVE:
            raise WorkflowInactiveError(f"Workflow {workflow_id} is inactive")
        return await self.orchestrator.run(workflow, data)

    # Events

    async def record_integration_event(self, event: IntegrationEvent) -> IntegrationEvent:
        return await self.events.record(event)

    async def list_events(
        self,
        integration_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        unresolved_only: bool = False
    ) -> List[IntegrationEvent]:
        return await self.events.list(
            integration_id=integration_id,
            workflow_id=workflow_id,
            unresolved_only=unresolved_only
        )

    async def resolve_event(self, event_id: str) -> IntegrationEvent:
        event = await self.events.resolve(event_id)
        if event is None:
            raise RecordNotFoundError("Event", event_id)
        return event

    # Analytics

    async def get_integration_analytics(self, integration_id: str, period: str = "day") -> Dict[str, Any]:
        if period not in ANALYTICS_PERIODS:
            raise ValueError(f"Unsupported analytics period: {period}")

        since = datetime.now(timezone.utc) - ANALYTICS_PERIODS[period]
        analytics = self.metrics.get_analytics(integration_id=integration_id, since=since)
        total = analytics["total_requests"]
        error_rate = analytics["average_error_rate"]

        return {
            "integration_id": integration_id,
            "period": period,
            "metrics": {
                "total_requests": total,
                "successful_requests": round(total * (1 - error_rate)),
                "failed_requests": round(total * error_rate),
                "average_response_time": analytics["average_response_time"],
                "error_rate": error_rate,
                "throughput": analytics["throughput"],
                "last_sample_at": analytics["last_sample_at"],
            },
        }

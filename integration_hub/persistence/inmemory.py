"""In-memory repositories.

Useful for tests or when embedding the engine without a database. Data is not
persisted across process restarts.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from ..workflows.models import Integration, IntegrationEvent, IntegrationWorkflow


class InMemoryIntegrationRepository:
    def __init__(self, integrations: Optional[List[Integration]] = None) -> None:
        self._integrations: Dict[str, Integration] = {}
        for integration in integrations or []:
            self._integrations[integration.id] = integration

    async def get(self, integration_id: str) -> Optional[Integration]:
        return self._integrations.get(integration_id)

    async def list(
        self,
        organization_id: Optional[str] = None,
        provider: Optional[str] = None
    ) -> List[Integration]:
        return [
            integration for integration in self._integrations.values()
            if (organization_id is None or integration.organization_id == organization_id)
            and (provider is None or integration.provider == provider)
        ]

    async def add(self, integration: Integration) -> Integration:
        self._integrations[integration.id] = integration
        return integration

    async def save(self, integration: Integration) -> Integration:
        self._integrations[integration.id] = integration
        return integration


class InMemoryWorkflowRepository:
    def __init__(self, workflows: Optional[List[IntegrationWorkflow]] = None) -> None:
        self._workflows: Dict[str, IntegrationWorkflow] = {}
        for workflow in workflows or []:
            self._workflows[workflow.id] = workflow

    async def get(self, workflow_id: str) -> Optional[IntegrationWorkflow]:
        return self._workflows.get(workflow_id)

    async def list(self, organization_id: Optional[str] = None) -> List[IntegrationWorkflow]:
        return [
            workflow for workflow in self._workflows.values()
            if organization_id is None or workflow.organization_id == organization_id
        ]

    async def add(self, workflow: IntegrationWorkflow) -> IntegrationWorkflow:
        self._workflows[workflow.id] = workflow
        return workflow

    async def save(self, workflow: IntegrationWorkflow) -> IntegrationWorkflow:
        self._workflows[workflow.id] = workflow
        return workflow


class InMemoryEventRepository:
    def __init__(self) -> None:
        self._events: List[IntegrationEvent] = []

    async def add(self, event: IntegrationEvent) -> IntegrationEvent:
        self._events.append(event)
        return event

    async def get(self, event_id: str) -> Optional[IntegrationEvent]:
        for event in self._events:
            if event.id == event_id:
                return event
        return None

    async def list(
        self,
        integration_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        unresolved_only: bool = False
    ) -> List[IntegrationEvent]:
        events = [
            event for event in self._events
            if (integration_id is None or event.integration_id == integration_id)
            and (workflow_id is None or event.workflow_id == workflow_id)
            and not (unresolved_only and event.resolved)
        ]
        return sorted(events, key=lambda event: event.timestamp, reverse=True)

    async def resolve(self, event_id: str) -> Optional[IntegrationEvent]:
        event = await self.get(event_id)
        if event is not None:
            event.resolved = True
        return event

"""Repository abstractions for integrations, workflows and events."""

from __future__ import annotations

from typing import List, Optional, Protocol

from ..workflows.models import Integration, IntegrationEvent, IntegrationWorkflow


class IntegrationRepository(Protocol):
    """Persistence backend for configured integrations."""

    async def get(self, integration_id: str) -> Optional[Integration]:
        """Return the integration or None."""

    async def list(
        self,
        organization_id: Optional[str] = None,
        provider: Optional[str] = None
    ) -> List[Integration]:
        """Return integrations matching the filters."""

    async def add(self, integration: Integration) -> Integration:
        """Persist a new integration."""

    async def save(self, integration: Integration) -> Integration:
        """Persist changes to an existing integration."""


class WorkflowRepository(Protocol):
    """Persistence backend for workflow definitions and run counters."""

    async def get(self, workflow_id: str) -> Optional[IntegrationWorkflow]:
        """Return the workflow or None."""

    async def list(self, organization_id: Optional[str] = None) -> List[IntegrationWorkflow]:
        """Return workflows, optionally for one organization."""

    async def add(self, workflow: IntegrationWorkflow) -> IntegrationWorkflow:
        """Persist a new workflow."""

    async def save(self, workflow: IntegrationWorkflow) -> IntegrationWorkflow:
        """Persist status, counters and metadata."""


class EventRepository(Protocol):
    """Append-only store of integration events."""

    async def add(self, event: IntegrationEvent) -> IntegrationEvent:
        """Append an event."""

    async def get(self, event_id: str) -> Optional[IntegrationEvent]:
        """Return the event or None."""

    async def list(
        self,
        integration_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        unresolved_only: bool = False
    ) -> List[IntegrationEvent]:
        """Return events, newest first."""

    async def resolve(self, event_id: str) -> Optional[IntegrationEvent]:
        """Flip the resolved flag; None when the event does not exist."""

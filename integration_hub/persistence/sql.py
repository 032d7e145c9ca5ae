"""SQLAlchemy backed repositories."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.integration import IntegrationEventRecord, IntegrationRecord, WorkflowRecord
from ..workflows.models import (
    Integration,
    IntegrationEvent,
    IntegrationWorkflow,
    WorkflowMetadata,
)


def _integration_from_record(record: IntegrationRecord) -> Integration:
    return Integration(
        id=record.id,
        organization_id=record.organization_id,
        name=record.name,
        type=record.type,
        provider=record.provider,
        status=record.status,
        config=record.config or {},
        created_at=record.created_at,
        updated_at=record.updated_at or record.created_at,
        last_sync_at=record.last_sync_at,
        last_error_at=record.last_error_at,
        last_error_message=record.last_error_message,
    )


def _workflow_from_record(record: WorkflowRecord) -> IntegrationWorkflow:
    executions = record.execution_count or 0
    return IntegrationWorkflow(
        id=record.id,
        organization_id=record.organization_id,
        name=record.name,
        description=record.description or "",
        status=record.status,
        steps=record.steps or [],
        config=record.config or {},
        metadata=WorkflowMetadata(
            average_execution_time=record.average_execution_time or 0.0,
            last_execution_time=record.last_execution_time,
            success_rate=(record.success_count / executions * 100) if executions else 0.0,
        ),
        execution_count=executions,
        success_count=record.success_count or 0,
        error_count=record.error_count or 0,
        last_executed_at=record.last_executed_at,
    )


def _event_from_record(record: IntegrationEventRecord) -> IntegrationEvent:
    return IntegrationEvent(
        id=record.id,
        integration_id=record.integration_id,
        workflow_id=record.workflow_id,
        type=record.type,
        severity=record.severity,
        title=record.title,
        description=record.description or "",
        data=record.data or {},
        timestamp=record.timestamp,
        resolved=record.resolved,
    )


class SqlIntegrationRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, integration_id: str) -> Optional[Integration]:
        record = await self.db.get(IntegrationRecord, integration_id)
        return _integration_from_record(record) if record else None

    async def list(
        self,
        organization_id: Optional[str] = None,
        provider: Optional[str] = None
    ) -> List[Integration]:
        stmt = select(IntegrationRecord).order_by(IntegrationRecord.created_at)
        if organization_id:
            stmt = stmt.where(IntegrationRecord.organization_id == organization_id)
        if provider:
            stmt = stmt.where(IntegrationRecord.provider == provider)

        result = await self.db.execute(stmt)
        return [_integration_from_record(record) for record in result.scalars().all()]

    async def add(self, integration: Integration) -> Integration:
        record = IntegrationRecord(
            id=integration.id,
            created_at=integration.created_at,
            updated_at=integration.updated_at,
        )
        self._apply(record, integration)
        self.db.add(record)
        await self.db.commit()
        return integration

    async def save(self, integration: Integration) -> Integration:
        record = await self.db.get(IntegrationRecord, integration.id)
        if record is None:
            return await self.add(integration)
        self._apply(record, integration)
        await self.db.commit()
        return integration

    @staticmethod
    def _apply(record: IntegrationRecord, integration: Integration) -> None:
        record.organization_id = integration.organization_id
        record.name = integration.name
        record.type = integration.type
        record.provider = integration.provider
        record.status = integration.status.value
        record.config = integration.config
        record.last_sync_at = integration.last_sync_at
        record.last_error_at = integration.last_error_at
        record.last_error_message = integration.last_error_message


class SqlWorkflowRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, workflow_id: str) -> Optional[IntegrationWorkflow]:
        record = await self.db.get(WorkflowRecord, workflow_id)
        return _workflow_from_record(record) if record else None

    async def list(self, organization_id: Optional[str] = None) -> List[IntegrationWorkflow]:
        stmt = select(WorkflowRecord).order_by(WorkflowRecord.created_at)
        if organization_id:
            stmt = stmt.where(WorkflowRecord.organization_id == organization_id)

        result = await self.db.execute(stmt)
        return [_workflow_from_record(record) for record in result.scalars().all()]

    async def add(self, workflow: IntegrationWorkflow) -> IntegrationWorkflow:
        record = WorkflowRecord(id=workflow.id)
        self._apply(record, workflow)
        self.db.add(record)
        await self.db.commit()
        return workflow

    async def save(self, workflow: IntegrationWorkflow) -> IntegrationWorkflow:
        record = await self.db.get(WorkflowRecord, workflow.id)
        if record is None:
            return await self.add(workflow)
        self._apply(record, workflow)
        await self.db.commit()
        return workflow

    @staticmethod
    def _apply(record: WorkflowRecord, workflow: IntegrationWorkflow) -> None:
        record.organization_id = workflow.organization_id
        record.name = workflow.name
        record.description = workflow.description
        record.status = workflow.status.value
        record.steps = [step.model_dump(mode="json") for step in workflow.steps]
        record.config = workflow.config.model_dump(mode="json")
        record.execution_count = workflow.execution_count
        record.success_count = workflow.success_count
        record.error_count = workflow.error_count
        record.average_execution_time = workflow.metadata.average_execution_time
        record.last_execution_time = workflow.metadata.last_execution_time
        record.last_executed_at = workflow.last_executed_at


class SqlEventRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def add(self, event: IntegrationEvent) -> IntegrationEvent:
        self.db.add(IntegrationEventRecord(
            id=event.id,
            integration_id=event.integration_id,
            workflow_id=event.workflow_id,
            type=event.type,
            severity=event.severity.value,
            title=event.title,
            description=event.description,
            data=event.model_dump(mode="json")["data"],
            timestamp=event.timestamp,
            resolved=event.resolved,
        ))
        await self.db.commit()
        return event

    async def get(self, event_id: str) -> Optional[IntegrationEvent]:
        record = await self.db.get(IntegrationEventRecord, event_id)
        return _event_from_record(record) if record else None

    async def list(
        self,
        integration_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        unresolved_only: bool = False
    ) -> List[IntegrationEvent]:
        stmt = select(IntegrationEventRecord).order_by(IntegrationEventRecord.timestamp.desc())
        if integration_id:
            stmt = stmt.where(IntegrationEventRecord.integration_id == integration_id)
        if workflow_id:
            stmt = stmt.where(IntegrationEventRecord.workflow_id == workflow_id)
        if unresolved_only:
            stmt = stmt.where(IntegrationEventRecord.resolved.is_(False))

        result = await self.db.execute(stmt)
        return [_event_from_record(record) for record in result.scalars().all()]

    async def resolve(self, event_id: str) -> Optional[IntegrationEvent]:
        record = await self.db.get(IntegrationEventRecord, event_id)
        if record is None:
            return None
        record.resolved = True
        await self.db.commit()
        return _event_from_record(record)

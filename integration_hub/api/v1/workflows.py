from fastapi import APIRouter, Depends, HTTPException
from typing import Any, List, Optional

from pydantic import Field

from ...services.integration_service import IntegrationService, RecordNotFoundError, WorkflowInactiveError
from ...workflows.errors import WorkflowExecutionError
from ...workflows.models import (
    HubModel,
    IntegrationWorkflow,
    WorkflowConfig,
    WorkflowRunResult,
    WorkflowStatus,
    WorkflowStep,
)
from .deps import get_integration_service

router = APIRouter()


class CreateWorkflowRequest(HubModel):
    name: str
    description: str = ""
    organization_id: Optional[str] = None
    status: WorkflowStatus = WorkflowStatus.ACTIVE
    steps: List[WorkflowStep] = Field(default_factory=list)
    config: WorkflowConfig = Field(default_factory=WorkflowConfig)

class ExecuteWorkflowRequest(HubModel):
    data: Any = None


@router.get("", response_model=List[IntegrationWorkflow])
async def list_workflows(
    organization_id: Optional[str] = None,
    service: IntegrationService = Depends(get_integration_service)
):
    return await service.list_workflows(organization_id=organization_id)


@router.post("", response_model=IntegrationWorkflow, status_code=201)
async def create_workflow(
    request: CreateWorkflowRequest,
    service: IntegrationService = Depends(get_integration_service)
):
    """Create a workflow; step order and id uniqueness are checked on the model"""
    try:
        workflow = IntegrationWorkflow(**request.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return await service.create_workflow(workflow)


@router.get("/{workflow_id}", response_model=IntegrationWorkflow)
async def get_workflow(
    workflow_id: str,
    service: IntegrationService = Depends(get_integration_service)
):
    try:
        return await service.get_workflow(workflow_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{workflow_id}/execute", response_model=WorkflowRunResult)
async def execute_workflow(
    workflow_id: str,
    request: ExecuteWorkflowRequest,
    service: IntegrationService = Depends(get_integration_service)
):
    """Run a workflow synchronously and return the per-step results"""
    try:
        return await service.execute_workflow(workflow_id, request.data)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except WorkflowInactiveError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except WorkflowExecutionError as e:
        raise HTTPException(
            status_code=502,
            detail={
                "message": str(e),
                "workflowId": e.workflow_id,
                "stepId": e.step_id,
                "results": [result.model_dump(mode="json", by_alias=True) for result in e.results],
                "executionTime": e.execution_time,
            }
        )

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Any, Dict, List, Optional

from ...integrations.base import (
    IntegrationError,
    ProviderNotSupportedError,
    UnsupportedOperationError,
    ValidationError,
    mask_sensitive_data,
)
from ...services.integration_service import IntegrationService, RecordNotFoundError
from ...services.templates import IntegrationTemplate
from ...workflows.models import HubModel, Integration, TestResult
from .deps import get_integration_service

router = APIRouter()


class CreateIntegrationRequest(HubModel):
    name: str
    provider: str
    type: str = "custom"
    config: Dict[str, Any] = {}
    organization_id: Optional[str] = None

class ValidateConfigRequest(HubModel):
    provider: str
    config: Dict[str, Any] = {}

class ValidateConfigResponse(HubModel):
    valid: bool
    errors: List[str]


class IntegrationResponse(Integration):
    """An integration as served over HTTP, with credential values masked."""

    @classmethod
    def masked(cls, integration: Integration, service: IntegrationService) -> "IntegrationResponse":
        data = integration.model_dump()
        data["config"] = mask_sensitive_data(integration.config, service.sensitive_keys(integration))
        return cls(**data)


@router.get("", response_model=List[IntegrationResponse])
async def list_integrations(
    organization_id: Optional[str] = None,
    provider: Optional[str] = None,
    service: IntegrationService = Depends(get_integration_service)
):
    """List configured integrations"""
    integrations = await service.list_integrations(organization_id=organization_id, provider=provider)
    return [IntegrationResponse.masked(integration, service) for integration in integrations]


@router.post("", response_model=IntegrationResponse, status_code=201)
async def create_integration(
    request: CreateIntegrationRequest,
    service: IntegrationService = Depends(get_integration_service)
):
    """Create an integration after validating its provider config"""
    try:
        integration = await service.create_integration(
            name=request.name,
            provider=request.provider,
            config=request.config,
            type=request.type,
            organization_id=request.organization_id
        )
    except ProviderNotSupportedError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={"message": str(e), "errors": (e.response_data or {}).get("errors", [])}
        )
    return IntegrationResponse.masked(integration, service)


@router.get("/templates", response_model=List[IntegrationTemplate])
async def get_integration_templates(
    service: IntegrationService = Depends(get_integration_service)
):
    """Catalogue of built-in integration templates"""
    return service.get_integration_templates()


@router.post("/validate", response_model=ValidateConfigResponse)
async def validate_integration_config(
    request: ValidateConfigRequest,
    service: IntegrationService = Depends(get_integration_service)
):
    """Check a provider config without storing it"""
    errors = await service.validate_integration_config(request.provider, request.config)
    return ValidateConfigResponse(valid=not errors, errors=errors)


@router.get("/{integration_id}", response_model=IntegrationResponse)
async def get_integration(
    integration_id: str,
    service: IntegrationService = Depends(get_integration_service)
):
    try:
        integration = await service.get_integration(integration_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return IntegrationResponse.masked(integration, service)


@router.post("/{integration_id}/test", response_model=TestResult)
async def test_integration_connection(
    integration_id: str,
    service: IntegrationService = Depends(get_integration_service)
):
    """Run a connection test; failures are reported in the body, not as HTTP errors"""
    try:
        integration = await service.get_integration(integration_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return await service.test_connection(integration)


@router.post("/{integration_id}/deactivate", response_model=IntegrationResponse)
async def deactivate_integration(
    integration_id: str,
    service: IntegrationService = Depends(get_integration_service)
):
    try:
        integration = await service.deactivate_integration(integration_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return IntegrationResponse.masked(integration, service)


@router.get("/{integration_id}/schema")
async def get_integration_schema(
    integration_id: str,
    service: IntegrationService = Depends(get_integration_service)
):
    """Describe the provider-side data structure (tables, databases, channels)"""
    try:
        return await service.get_schema(integration_id)
    except (RecordNotFoundError, ProviderNotSupportedError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UnsupportedOperationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IntegrationError as e:
        raise HTTPException(status_code=502, detail=f"Schema discovery failed: {str(e)}")


@router.get("/{integration_id}/analytics")
async def get_integration_analytics(
    integration_id: str,
    period: str = Query(default="day", pattern="^(hour|day|week|month)$"),
    service: IntegrationService = Depends(get_integration_service)
) -> Dict[str, Any]:
    try:
        await service.get_integration(integration_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return await service.get_integration_analytics(integration_id, period)

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from typing import List, Optional

from ...services.integration_service import IntegrationService, RecordNotFoundError
from ...utils.logging import get_logger
from ...workflows.models import IntegrationEvent
from .deps import get_integration_service

router = APIRouter()
logger = get_logger(__name__)


@router.get("", response_model=List[IntegrationEvent])
async def list_events(
    integration_id: Optional[str] = None,
    workflow_id: Optional[str] = None,
    unresolved_only: bool = False,
    service: IntegrationService = Depends(get_integration_service)
):
    """Integration and workflow events, newest first"""
    return await service.list_events(
        integration_id=integration_id,
        workflow_id=workflow_id,
        unresolved_only=unresolved_only
    )


@router.post("/{event_id}/resolve", response_model=IntegrationEvent)
async def resolve_event(
    event_id: str,
    service: IntegrationService = Depends(get_integration_service)
):
    try:
        return await service.resolve_event(event_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.websocket("/stream")
async def stream_events(websocket: WebSocket):
    """Push every recorded event to the connected dashboard"""
    broadcaster = websocket.app.state.broadcaster

    async with broadcaster.subscribe() as queue:
        await websocket.accept()
        try:
            while True:
                channel, event = await queue.get()
                await websocket.send_json({
                    "channel": channel,
                    "event": event.model_dump(mode="json", by_alias=True),
                })
        except WebSocketDisconnect:
            logger.info("Event stream subscriber disconnected")

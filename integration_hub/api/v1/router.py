from fastapi import APIRouter
from .integrations import router as integrations_router
from .workflows import router as workflows_router
from .events import router as events_router

api_router = APIRouter()

# Include all sub-routers
api_router.include_router(integrations_router, prefix="/integrations", tags=["integrations"])
api_router.include_router(workflows_router, prefix="/workflows", tags=["workflows"])
api_router.include_router(events_router, prefix="/events", tags=["events"])

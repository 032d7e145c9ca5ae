"""Shared fixtures: in-memory repositories and httpx mock transports."""

import httpx
import pytest

from integration_hub.config import TestingConfig
from integration_hub.integrations.airtable_client import AirtableAdapter
from integration_hub.integrations.registry import ProviderRegistry
from integration_hub.persistence.inmemory import (
    InMemoryEventRepository,
    InMemoryIntegrationRepository,
    InMemoryWorkflowRepository,
)
from integration_hub.workflows.events import EventBroadcaster, EventRecorder
from integration_hub.workflows.executor import StepExecutor
from integration_hub.workflows.models import Integration
from integration_hub.workflows.notifications import Notifier
from integration_hub.workflows.orchestrator import WorkflowOrchestrator

from helpers import AIRTABLE_URL, RecordingHandler, mock_client


@pytest.fixture
def settings():
    return TestingConfig()


@pytest.fixture
def integrations():
    return InMemoryIntegrationRepository()


@pytest.fixture
def workflows():
    return InMemoryWorkflowRepository()


@pytest.fixture
def event_repository():
    return InMemoryEventRepository()


@pytest.fixture
def broadcaster():
    return EventBroadcaster(queue_size=10)


@pytest.fixture
def events(event_repository, broadcaster):
    return EventRecorder(event_repository, broadcaster)


@pytest.fixture
def airtable_routes():
    return {
        "GET /v0/meta/bases/appTEST/tables": {"tables": [{"id": "tbl1", "name": "Deals"}]},
        "GET /v0/appTEST/Deals": {"records": [
            {"id": "rec1", "fields": {"Name": "Acme", "Stage": "won", "Value": 1200}},
            {"id": "rec2", "fields": {"Name": "Globex", "Stage": "lost", "Value": 800}},
            {"id": "rec3", "fields": {"Name": "Initech", "Stage": "won", "Value": 300}},
        ]},
        "POST /v0/appTEST/Deals": lambda request: httpx.Response(200, content=request.content),
    }


@pytest.fixture
def airtable_handler(airtable_routes):
    return RecordingHandler(airtable_routes)


@pytest.fixture
def http_client(airtable_handler):
    return mock_client(airtable_handler)


@pytest.fixture
def registry(http_client):
    return ProviderRegistry([AirtableAdapter(base_url=AIRTABLE_URL, client=http_client)])


@pytest.fixture
async def airtable_integration(integrations):
    integration = Integration(
        id="int-airtable",
        name="CRM Base",
        provider="airtable",
        config={"apiKey": "keyTEST", "baseId": "appTEST"},
    )
    await integrations.add(integration)
    return integration


@pytest.fixture
def notifier(http_client):
    return Notifier(http_client)


@pytest.fixture
def executor(registry, integrations, notifier, http_client):
    return StepExecutor(registry, integrations, notifier, http_client, max_condition_depth=3)


@pytest.fixture
def orchestrator(executor, events, workflows):
    return WorkflowOrchestrator(executor, events, workflows=workflows, step_timeout=5.0, retry_max_delay=0.0)

"""Step executor: one step against its handler."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest
from pydantic import TypeAdapter

from integration_hub.integrations.base import IntegrationError, IntegrationStatus, ProviderNotSupportedError
from integration_hub.workflows.errors import WebhookError, WorkflowStepError
from integration_hub.workflows.executor import IntegrationLocks, StepExecutor
from integration_hub.workflows.models import Integration, WorkflowStep
from integration_hub.workflows.notifications import Notifier

from helpers import RecordingHandler, mock_client

STEP = TypeAdapter(WorkflowStep)


def make_step(**data):
    return STEP.validate_python(data)


def api_call(endpoint="Deals", method="get", body=None, integration_id="int-airtable"):
    return make_step(
        id="call",
        type="api_call",
        config={"integrationId": integration_id, "endpoint": endpoint, "method": method, "body": body},
    )


@pytest.mark.asyncio
async def test_api_call_reads_records_and_marks_integration_synced(executor, airtable_integration, integrations):
    result = await executor.execute_step(api_call())

    assert [record["id"] for record in result["records"]] == ["rec1", "rec2", "rec3"]
    stored = await integrations.get("int-airtable")
    assert stored.status == IntegrationStatus.ACTIVE
    assert stored.last_sync_at is not None


@pytest.mark.asyncio
async def test_api_call_posts_running_data_when_no_body(executor, airtable_integration, airtable_handler):
    await executor.execute_step(api_call(method="POST"), {"Name": "Hooli"})

    assert airtable_handler.json_body() == {"records": [{"fields": {"Name": "Hooli"}}]}


@pytest.mark.asyncio
async def test_api_call_prefers_configured_body(executor, airtable_integration, airtable_handler):
    await executor.execute_step(api_call(method="post", body={"Name": "Fixed"}), {"Name": "Ignored"})

    assert airtable_handler.json_body() == {"records": [{"fields": {"Name": "Fixed"}}]}


@pytest.mark.asyncio
async def test_api_call_failure_marks_integration_error(executor, airtable_integration, integrations):
    with pytest.raises(IntegrationError):
        await executor.execute_step(api_call(endpoint="Missing"))

    stored = await integrations.get("int-airtable")
    assert stored.status == IntegrationStatus.ERROR
    assert stored.last_error_message == "Client error: 404"


@pytest.mark.asyncio
async def test_api_call_unknown_integration(executor):
    with pytest.raises(WorkflowStepError, match="Integration nope not found"):
        await executor.execute_step(api_call(integration_id="nope"))


@pytest.mark.asyncio
async def test_api_call_unregistered_provider(executor, integrations):
    await integrations.add(Integration(id="int-hubspot", name="CRM", provider="hubspot"))

    with pytest.raises(ProviderNotSupportedError):
        await executor.execute_step(api_call(integration_id="int-hubspot"))


@pytest.mark.asyncio
async def test_api_call_unsupported_method(executor, airtable_integration):
    with pytest.raises(WorkflowStepError, match="Unsupported HTTP method: PATCH"):
        await executor.execute_step(api_call(method="PATCH"))


@pytest.mark.asyncio
async def test_data_transform_step(executor):
    step = make_step(type="data_transform", config={"type": "aggregate", "field": "v", "operation": "sum"})
    assert await executor.execute_step(step, [{"v": 1}, {"v": 2}]) == 3


@pytest.mark.asyncio
async def test_condition_without_actions_returns_match(executor):
    step = make_step(type="condition", config={"conditions": [{"field": "n", "operator": "greater_than", "value": 1}]})
    assert await executor.execute_step(step, {"n": 5}) is True
    assert await executor.execute_step(step, {"n": 0}) is False


@pytest.mark.asyncio
async def test_condition_runs_matching_branch(executor):
    step = make_step(type="condition", config={
        "conditions": [{"field": "kind", "operator": "equals", "value": "bulk"}],
        "trueAction": {"type": "data_transform", "config": {"type": "map", "mapping": {"k": "kind"}}},
        "falseAction": {"type": "data_transform", "config": {"type": "format", "format": "json"}},
    })

    assert await executor.execute_step(step, {"kind": "bulk"}) == {"k": "bulk"}
    assert await executor.execute_step(step, {"kind": "single"}) == '{\n  "kind": "single"\n}'


@pytest.mark.asyncio
async def test_condition_nesting_is_bounded(executor):
    action = {"type": "data_transform", "config": {"type": "map", "mapping": {}}}
    for _ in range(4):
        action = {"type": "condition", "config": {"conditions": [], "trueAction": action}}

    with pytest.raises(WorkflowStepError, match="nests deeper than 3 levels"):
        await executor.execute_step(make_step(**action), {})


@pytest.mark.asyncio
async def test_webhook_step_posts_json(registry, integrations):
    handler = RecordingHandler({"POST /hooks/report": {"received": True}})
    client = mock_client(handler)
    executor = StepExecutor(registry, integrations, Notifier(client), client)
    step = make_step(type="webhook", config={
        "url": "https://hooks.test/hooks/report",
        "headers": {"X-Token": "abc"},
    })

    assert await executor.execute_step(step, {"total": 3}) == {"received": True}
    request = handler.requests[-1]
    assert request.headers["X-Token"] == "abc"
    assert request.headers["Content-Type"] == "application/json"
    assert handler.json_body() == {"total": 3}


@pytest.mark.asyncio
async def test_webhook_step_non_2xx_raises(registry, integrations):
    handler = RecordingHandler({"POST /hooks/report": httpx.Response(500, text="down")})
    client = mock_client(handler)
    executor = StepExecutor(registry, integrations, Notifier(client), client)
    step = make_step(type="webhook", config={"url": "https://hooks.test/hooks/report"})

    with pytest.raises(WebhookError) as exc_info:
        await executor.execute_step(step, {})
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_webhook_empty_body_returns_empty_dict(registry, integrations):
    handler = RecordingHandler({"POST /hooks/report": httpx.Response(204)})
    client = mock_client(handler)
    executor = StepExecutor(registry, integrations, Notifier(client), client)
    step = make_step(type="webhook", config={"url": "https://hooks.test/hooks/report"})

    assert await executor.execute_step(step, {}) == {}


@pytest.mark.asyncio
async def test_notification_step_posts_to_slack(registry, integrations, http_client):
    slack = AsyncMock()
    slack.chat_postMessage.return_value = {"ok": True, "ts": "1.23"}
    notifier = Notifier(http_client, slack_token="xoxb-1", slack_client_factory=lambda **kwargs: slack)
    executor = StepExecutor(registry, integrations, notifier, http_client)
    step = make_step(type="notification", config={
        "type": "slack",
        "channel": "#sales",
        "template": "Won {{count}} deals",
    })

    result = await executor.execute_step(step, {"count": 2})

    assert result == {"success": True, "type": "slack", "ts": "1.23"}
    slack.chat_postMessage.assert_awaited_once_with(channel="#sales", text="Won 2 deals")


@pytest.mark.asyncio
async def test_email_notification_requires_api_key(executor):
    step = make_step(type="notification", config={"type": "email", "to": ["ops@example.com"], "subject": "Hi"})

    with pytest.raises(WorkflowStepError, match="RESEND_API_KEY"):
        await executor.execute_step(step, {})


@pytest.mark.asyncio
async def test_unknown_step_type(executor):
    class Bogus:
        type = "teleport"

    with pytest.raises(WorkflowStepError, match="Unknown workflow step type"):
        await executor.execute_step(Bogus())


@pytest.mark.asyncio
async def test_integration_locks_serialize_and_release():
    locks = IntegrationLocks()
    order = []

    async def worker(name):
        async with locks.hold("a"):
            order.append(f"{name} in")
            await asyncio.sleep(0.01)
            order.append(f"{name} out")

    await asyncio.gather(worker("one"), worker("two"))

    assert order == ["one in", "one out", "two in", "two out"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_api_call_releases_integration_lock(executor, airtable_integration):
    await executor.execute_step(api_call())
    assert len(executor.locks) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [IntegrationStatus.INACTIVE, IntegrationStatus.DISCONNECTED])
async def test_api_call_refuses_disabled_integration(executor, integrations, airtable_handler, status):
    await integrations.add(Integration(
        id="int-off", name="CRM", provider="airtable", status=status,
        config={"apiKey": "keyTEST", "baseId": "appTEST"},
    ))

    with pytest.raises(WorkflowStepError, match=f"Integration int-off is {status.value}"):
        await executor.execute_step(api_call(integration_id="int-off"))

    assert airtable_handler.paths() == []
    assert (await integrations.get("int-off")).status == status


@pytest.mark.asyncio
async def test_api_call_runs_after_error_status(executor, integrations):
    await integrations.add(Integration(
        id="int-flaky", name="CRM", provider="airtable", status=IntegrationStatus.ERROR,
        config={"apiKey": "keyTEST", "baseId": "appTEST"},
    ))

    await executor.execute_step(api_call(integration_id="int-flaky"))

    assert (await integrations.get("int-flaky")).status == IntegrationStatus.ACTIVE


@pytest.mark.asyncio
async def test_webhook_rejects_non_http_url(registry, integrations, http_client):
    executor = StepExecutor(registry, integrations, Notifier(http_client), http_client)
    step = make_step(type="webhook", config={"url": "ftp://hooks.test/report"})

    with pytest.raises(WorkflowStepError, match="invalid url"):
        await executor.execute_step(step, {})

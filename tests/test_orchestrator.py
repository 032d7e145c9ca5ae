"""Workflow orchestrator: ordering, data threading and error-handling policies."""

import asyncio

import httpx
import pytest

from integration_hub.integrations.base import ProviderNotSupportedError
from integration_hub.persistence.inmemory import InMemoryWorkflowRepository
from integration_hub.workflows.errors import StepTimeoutError, WorkflowExecutionError, WorkflowStepError
from integration_hub.workflows.models import (
    EventSeverity,
    Integration,
    IntegrationWorkflow,
    RetryConfig,
    RunStatus,
    WorkflowStatus,
)
from integration_hub.workflows.orchestrator import WorkflowOrchestrator, compute_backoff

HOOK = "https://hooks.test/hooks"

DEALS = [
    {"name": "Acme", "stage": "won", "value": 1200},
    {"name": "Globex", "stage": "lost", "value": 800},
    {"name": "Initech", "stage": "won", "value": 300},
]


def workflow(steps, **config):
    return IntegrationWorkflow(id="wf-1", name="Deals", steps=steps, config=config)


def won_filter(order=1, **extra):
    return {
        "id": "won", "order": order, "type": "data_transform",
        "config": {"type": "filter", "conditions": [{"field": "stage", "operator": "equals", "value": "won"}]},
        **extra,
    }


def total(order=2, **extra):
    return {
        "id": "total", "order": order, "type": "data_transform",
        "config": {"type": "aggregate", "field": "value", "operation": "sum"},
        **extra,
    }


def webhook(step_id, order, path, **extra):
    return {"id": step_id, "order": order, "type": "webhook", "config": {"url": f"{HOOK}/{path}"}, **extra}


def broken_call(order):
    return {
        "id": "broken", "order": order, "type": "api_call",
        "config": {"integrationId": "missing", "endpoint": "Deals"},
    }


@pytest.mark.asyncio
async def test_steps_run_in_ascending_order(orchestrator, workflows):
    wf = workflow([total(order=2), won_filter(order=1)])
    await workflows.add(wf)

    result = await orchestrator.run(wf, DEALS)

    assert result.success is True
    assert result.status == RunStatus.COMPLETED
    assert [r.step_id for r in result.results] == ["won", "total"]
    assert result.results[-1].output == 1500
    assert result.execution_time >= 0


@pytest.mark.asyncio
async def test_successful_run_updates_counters(orchestrator, workflows):
    wf = workflow([won_filter()])
    await workflows.add(wf)

    await orchestrator.run(wf, DEALS)
    stored = await workflows.get("wf-1")

    assert stored.execution_count == 1
    assert stored.success_count == 1
    assert stored.error_count == 0
    assert stored.status == WorkflowStatus.ACTIVE
    assert stored.metadata.success_rate == 100.0
    assert stored.metadata.last_execution_time is not None
    assert stored.last_executed_at is not None


@pytest.mark.asyncio
async def test_stop_policy_halts_and_records_one_event(orchestrator, airtable_routes, airtable_handler, event_repository):
    airtable_routes["POST /hooks/after"] = {"ok": True}
    wf = workflow([won_filter(order=1), broken_call(order=2), webhook("after", 3, "after")])

    with pytest.raises(WorkflowExecutionError) as exc_info:
        await orchestrator.run(wf, DEALS)

    error = exc_info.value
    assert error.step_id == "broken"
    assert isinstance(error.__cause__, WorkflowStepError)
    assert [r.success for r in error.results] == [True, False]
    assert "POST /hooks/after" not in airtable_handler.paths()

    recorded = await event_repository.list(workflow_id="wf-1")
    assert [event.type for event in recorded] == ["workflow_error"]
    assert recorded[0].severity == EventSeverity.HIGH
    assert recorded[0].data["stepId"] == "broken"
    assert wf.error_count == 1
    assert wf.status == WorkflowStatus.ERROR


@pytest.mark.asyncio
async def test_continue_policy_runs_remaining_steps(orchestrator, airtable_routes, airtable_handler, event_repository):
    airtable_routes["POST /hooks/after"] = {"ok": True}
    wf = workflow(
        [won_filter(order=1), broken_call(order=2), webhook("after", 3, "after")],
        errorHandling="continue",
    )

    result = await orchestrator.run(wf, DEALS)

    assert result.success is False
    assert [r.success for r in result.results] == [True, False, True]
    assert result.results[1].error == "Integration missing not found"
    assert "POST /hooks/after" in airtable_handler.paths()

    recorded = await event_repository.list(workflow_id="wf-1")
    assert [event.type for event in recorded] == ["workflow_step_error"]
    assert recorded[0].severity == EventSeverity.MEDIUM
    assert wf.error_count == 1


@pytest.mark.asyncio
async def test_retry_policy_retries_until_success(orchestrator, airtable_routes):
    calls = []

    def flaky(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json={"accepted": True})

    airtable_routes["POST /hooks/flaky"] = flaky
    wf = workflow([webhook("push", 1, "flaky")], errorHandling="retry", retryAttempts=3, retryDelay=0)

    result = await orchestrator.run(wf, {"total": 1})

    assert result.success is True
    assert result.results[0].attempts == 3
    assert result.results[0].output == {"accepted": True}
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_non_numeric_aggregate_is_not_retried(orchestrator):
    wf = workflow([total(order=1)], errorHandling="retry", retryAttempts=3, retryDelay=0)

    with pytest.raises(WorkflowExecutionError) as exc_info:
        await orchestrator.run(wf, [{"value": "12"}, {"value": 3}])

    assert exc_info.value.results[0].attempts == 1
    assert exc_info.value.results[0].error == "Field value is not numeric"


@pytest.mark.asyncio
async def test_retry_policy_exhausted_behaves_like_stop(orchestrator, airtable_routes, event_repository):
    calls = []

    def down(request):
        calls.append(request)
        return httpx.Response(500, text="down")

    airtable_routes["POST /hooks/down"] = down
    wf = workflow([webhook("push", 1, "down")], errorHandling="retry", retryAttempts=2, retryDelay=0)

    with pytest.raises(WorkflowExecutionError) as exc_info:
        await orchestrator.run(wf, {})

    assert len(calls) == 3
    assert exc_info.value.results[0].attempts == 3
    recorded = await event_repository.list(workflow_id="wf-1")
    assert [event.type for event in recorded] == ["workflow_error"]


@pytest.mark.asyncio
async def test_step_retry_config_applies_under_stop_policy(orchestrator, airtable_routes):
    calls = []

    def flaky(request):
        calls.append(request)
        return httpx.Response(502) if len(calls) == 1 else httpx.Response(200, json={})

    airtable_routes["POST /hooks/flaky"] = flaky
    step = webhook("push", 1, "flaky", retryConfig={"attempts": 1, "delay": 0, "backoff": "linear"})

    result = await orchestrator.run(workflow([step]), {})

    assert result.results[0].attempts == 2


@pytest.mark.asyncio
async def test_unsupported_provider_is_not_retried(orchestrator, integrations):
    await integrations.add(Integration(id="int-hubspot", name="CRM", provider="hubspot"))
    step = {
        "id": "call", "order": 1, "type": "api_call",
        "config": {"integrationId": "int-hubspot", "endpoint": "contacts"},
    }
    wf = workflow([step], errorHandling="retry", retryAttempts=3, retryDelay=0)

    with pytest.raises(WorkflowExecutionError) as exc_info:
        await orchestrator.run(wf, {})

    assert isinstance(exc_info.value.__cause__, ProviderNotSupportedError)
    assert exc_info.value.results[0].attempts == 1
    assert exc_info.value.results[0].error == "Provider hubspot not supported"


@pytest.mark.asyncio
async def test_step_reporting_failure_fails_the_step(orchestrator, airtable_routes):
    airtable_routes["POST /hooks/verdict"] = {"success": False, "error": "rejected"}
    wf = workflow([webhook("verdict", 1, "verdict")], errorHandling="continue")

    result = await orchestrator.run(wf, {})

    assert result.success is False
    assert result.results[0].error == "rejected"


@pytest.mark.asyncio
async def test_step_timeout(orchestrator, airtable_routes):
    async def slow(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json={})

    airtable_routes["POST /hooks/slow"] = slow
    wf = workflow([webhook("slow", 1, "slow", timeout=0.05)])

    with pytest.raises(WorkflowExecutionError) as exc_info:
        await orchestrator.run(wf, {})

    assert isinstance(exc_info.value.__cause__, StepTimeoutError)


@pytest.mark.asyncio
async def test_workflow_timeout_cuts_the_run_short(orchestrator, airtable_routes, airtable_handler, event_repository):
    async def slow(request):
        await asyncio.sleep(0.5)
        return httpx.Response(200, json={})

    airtable_routes["POST /hooks/first"] = slow
    airtable_routes["POST /hooks/second"] = slow
    wf = workflow([webhook("first", 1, "first"), webhook("second", 2, "second")], timeout=0.1)

    with pytest.raises(WorkflowExecutionError) as exc_info:
        await orchestrator.run(wf, {})

    assert exc_info.value.step_id == "first"
    assert isinstance(exc_info.value.__cause__, StepTimeoutError)
    assert exc_info.value.__cause__.timeout <= 0.1
    assert "POST /hooks/second" not in airtable_handler.paths()

    recorded = await event_repository.list(workflow_id="wf-1")
    assert [event.type for event in recorded] == ["workflow_error"]
    assert wf.execution_count == 1


class FailingSaveRepository(InMemoryWorkflowRepository):
    """Workflow repository whose saves fail from the given call number on."""

    def __init__(self, fail_from):
        super().__init__()
        self.fail_from = fail_from
        self.saves = 0

    async def save(self, workflow):
        self.saves += 1
        if self.saves >= self.fail_from:
            raise RuntimeError("database unavailable")
        return await super().save(workflow)


@pytest.mark.asyncio
async def test_failed_final_save_counts_the_run_once(executor, events, event_repository):
    repository = FailingSaveRepository(fail_from=2)
    orchestrator = WorkflowOrchestrator(executor, events, workflows=repository, step_timeout=5.0)
    wf = workflow([won_filter()])

    with pytest.raises(RuntimeError):
        await orchestrator.run(wf, DEALS)

    assert (wf.execution_count, wf.success_count, wf.error_count) == (1, 1, 0)
    recorded = await event_repository.list(workflow_id="wf-1")
    assert [event.type for event in recorded] == ["workflow_error"]


@pytest.mark.asyncio
async def test_error_event_survives_a_failing_save(executor, events, event_repository):
    repository = FailingSaveRepository(fail_from=2)
    orchestrator = WorkflowOrchestrator(executor, events, workflows=repository, step_timeout=5.0)
    wf = workflow([broken_call(order=1)])

    with pytest.raises(RuntimeError):
        await orchestrator.run(wf, DEALS)

    assert (wf.execution_count, wf.success_count, wf.error_count) == (1, 0, 1)
    recorded = await event_repository.list(workflow_id="wf-1")
    assert [event.type for event in recorded] == ["workflow_error"]
    assert recorded[0].data["stepId"] == "broken"


@pytest.mark.asyncio
async def test_non_piping_steps_keep_running_data(orchestrator, airtable_routes, airtable_handler):
    airtable_routes["POST /hooks/audit"] = {"logged": True}
    wf = workflow([won_filter(order=1), webhook("audit", 2, "audit"), total(order=3)])

    result = await orchestrator.run(wf, DEALS)

    assert airtable_handler.json_body() == [DEALS[0], DEALS[2]]
    assert result.results[-1].output == 1500


@pytest.mark.asyncio
async def test_input_from_reads_an_earlier_output(orchestrator):
    wf = workflow([
        won_filter(order=1),
        {"id": "names", "order": 2, "type": "data_transform",
         "config": {"type": "map", "mapping": {"n": "name"}}},
        total(order=3, inputFrom="won"),
    ])

    result = await orchestrator.run(wf, DEALS)

    assert result.results[1].output == [{"n": "Acme"}, {"n": "Initech"}]
    assert result.results[2].output == 1500


@pytest.mark.asyncio
async def test_input_from_unknown_step_fails(orchestrator):
    wf = workflow([total(order=1, inputFrom="nope")])

    with pytest.raises(WorkflowExecutionError):
        await orchestrator.run(wf, DEALS)


def test_duplicate_step_order_is_rejected():
    with pytest.raises(ValueError):
        workflow([won_filter(order=1), total(order=1)])


def test_compute_backoff():
    exponential = RetryConfig(attempts=5, delay=1.0, backoff="exponential", max_delay=5.0)
    assert [compute_backoff(exponential, n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]

    linear = RetryConfig(attempts=5, delay=2.0, backoff="linear", max_delay=30.0)
    assert [compute_backoff(linear, n) for n in (1, 2, 3)] == [2.0, 4.0, 6.0]

"""Sequential workflow runner.

A run moves ``pending -> running -> completed | failed``. Steps execute one
after another in ascending ``order``; there is no pause/resume and no
cancellation token beyond ordinary asyncio task cancellation.

Data threading: every step reads the running data (the initial payload until a
piping step replaces it) or, with ``input_from``, the output of a specific
earlier step. ``api_call`` and ``data_transform`` outputs replace the running
data by default; ``pipe_output`` overrides that per step.
"""

import asyncio
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..integrations.base import (
    AuthenticationError,
    AuthorizationError,
    ProviderNotSupportedError,
)
from ..persistence.repository import WorkflowRepository
from ..utils.logging import get_logger
from .errors import StepTimeoutError, WorkflowExecutionError, WorkflowStepError
from .events import EventRecorder
from .executor import StepExecutor
from .models import (
    ErrorHandling,
    EventSeverity,
    IntegrationEvent,
    IntegrationWorkflow,
    RetryConfig,
    RunStatus,
    StepResult,
    WorkflowRunResult,
    WorkflowStatus,
)

logger = get_logger(__name__)

NON_RETRYABLE_ERRORS = (
    WorkflowStepError,
    ProviderNotSupportedError,
    AuthenticationError,
    AuthorizationError,
)


def compute_backoff(retry: RetryConfig, attempt: int) -> float:
    """Delay before retry number ``attempt`` (1-based), capped by ``max_delay``."""
    if retry.backoff == "linear":
        delay = retry.delay * attempt
    else:
        delay = retry.delay * (2 ** (attempt - 1))
    return min(delay, retry.max_delay)


def reports_failure(output: Any) -> bool:
    return isinstance(output, Mapping) and output.get("success") is False


class WorkflowContext:
    """Data passed between the steps of one run."""

    def __init__(self, initial: Any = None) -> None:
        self.initial = initial
        self.current = initial
        self.outputs: Dict[str, Any] = {}

    def input_for(self, step: Any) -> Any:
        if step.input_from is None:
            return self.current
        if step.input_from not in self.outputs:
            raise WorkflowStepError(
                f"Step {step.label} reads the output of {step.input_from}, which has not run"
            )
        return self.outputs[step.input_from]

    def record(self, step: Any, output: Any) -> None:
        self.outputs[step.id] = output
        if step.pipes_output:
            self.current = output


class WorkflowOrchestrator:
    def __init__(
        self,
        executor: StepExecutor,
        events: EventRecorder,
        workflows: Optional[WorkflowRepository] = None,
        step_timeout: Optional[float] = 60.0,
        retry_max_delay: float = 30.0
    ) -> None:
        self.executor = executor
        self.events = events
        self.workflows = workflows
        self.step_timeout = step_timeout
        self.retry_max_delay = retry_max_delay

    async def run(self, workflow: IntegrationWorkflow, initial_data: Any = None) -> WorkflowRunResult:
        """Run every step of ``workflow`` and return the per-step results.

        Raises:
            WorkflowExecutionError: a step failed under the ``stop`` or
                ``retry`` policy, or the workflow timeout elapsed. A
                ``workflow_error`` event is recorded first.
        """
        loop = asyncio.get_running_loop()
        started = time.perf_counter()
        deadline = loop.time() + workflow.config.timeout if workflow.config.timeout else None
        policy = workflow.config.error_handling
        context = WorkflowContext(initial_data)
        results: List[StepResult] = []
        failed_step = None
        finished = False

        logger.info(f"Running workflow {workflow.id} ({workflow.name}) with policy {policy.value}")

        try:
            await self._mark_running(workflow)

            for step in workflow.ordered_steps():
                failed_step = step
                if deadline is not None and loop.time() >= deadline:
                    raise WorkflowExecutionError(
                        f"Workflow timed out after {workflow.config.timeout}s",
                        workflow.id,
                        step.id,
                        results
                    )

                result, error = await self._run_step(workflow, step, context, deadline)
                results.append(result)
                if result.success:
                    continue

                if policy is ErrorHandling.CONTINUE:
                    await self._record_step_failure(workflow, step, result)
                    continue

                raise WorkflowExecutionError(
                    f"Workflow step failed: {step.label}: {result.error}",
                    workflow.id,
                    step.id,
                    results
                ) from error

            execution_time = (time.perf_counter() - started) * 1000
            success = all(result.success for result in results)
            finished = True
            await self._finish(workflow, success, execution_time)
        except Exception as e:
            execution_time = (time.perf_counter() - started) * 1000
            if isinstance(e, WorkflowExecutionError):
                e.execution_time = execution_time
            logger.error(f"Workflow {workflow.id} failed: {str(e)}")
            try:
                await self._record_workflow_error(workflow, failed_step, e, initial_data)
            finally:
                # Counters move at most once per run
                if not finished:
                    await self._finish(workflow, False, execution_time)
            raise

        logger.info(
            f"Workflow {workflow.id} completed in {execution_time:.1f}ms "
            f"({sum(r.success for r in results)}/{len(results)} steps succeeded)"
        )
        return WorkflowRunResult(
            workflow_id=workflow.id,
            success=success,
            status=RunStatus.COMPLETED,
            results=results,
            execution_time=execution_time,
        )

    async def _run_step(
        self,
        workflow: IntegrationWorkflow,
        step: Any,
        context: WorkflowContext,
        deadline: Optional[float]
    ) -> Tuple[StepResult, Optional[Exception]]:
        retry = self._retry_config(workflow, step)
        max_attempts = 1 + (retry.attempts if retry else 0)
        started = time.perf_counter()
        attempt = 0

        while True:
            attempt += 1
            error: Optional[Exception] = None
            output: Any = None
            try:
                output = await self._execute_with_timeout(step, context.input_for(step), deadline)
            except Exception as e:
                error = e

            duration = (time.perf_counter() - started) * 1000
            if error is None and not reports_failure(output):
                context.record(step, output)
                return StepResult(
                    step_id=step.id,
                    name=step.label,
                    type=step.type,
                    success=True,
                    output=output,
                    attempts=attempt,
                    duration_ms=duration,
                ), None

            message = str(error) if error is not None else str(output.get("error") or "Step reported failure")
            retryable = not isinstance(error, NON_RETRYABLE_ERRORS)
            if attempt >= max_attempts or not retryable:
                logger.error(f"Step {step.label} failed after {attempt} attempt(s): {message}")
                return StepResult(
                    step_id=step.id,
                    name=step.label,
                    type=step.type,
                    success=False,
                    output=output,
                    error=message,
                    attempts=attempt,
                    duration_ms=duration,
                ), error

            delay = compute_backoff(retry, attempt)
            logger.warning(
                f"Step {step.label} failed (attempt {attempt}/{max_attempts}), "
                f"retrying in {delay:.2f}s: {message}"
            )
            await asyncio.sleep(delay)

    def _retry_config(self, workflow: IntegrationWorkflow, step: Any) -> Optional[RetryConfig]:
        if step.retry_config is not None:
            return step.retry_config
        if workflow.config.error_handling is ErrorHandling.RETRY:
            return RetryConfig(
                attempts=workflow.config.retry_attempts,
                delay=workflow.config.retry_delay,
                backoff="exponential",
                max_delay=self.retry_max_delay,
            )
        return None

    async def _execute_with_timeout(self, step: Any, data: Any, deadline: Optional[float]) -> Any:
        timeout = step.timeout or self.step_timeout
        if deadline is not None:
            remaining = max(deadline - asyncio.get_running_loop().time(), 0.0)
            timeout = remaining if timeout is None else min(timeout, remaining)

        try:
            return await asyncio.wait_for(self.executor.execute_step(step, data), timeout)
        except asyncio.TimeoutError:
            raise StepTimeoutError(step.label, timeout) from None

    async def _mark_running(self, workflow: IntegrationWorkflow) -> None:
        workflow.status = WorkflowStatus.RUNNING
        if self.workflows is not None:
            await self.workflows.save(workflow)

    async def _finish(self, workflow: IntegrationWorkflow, success: bool, execution_time: float) -> None:
        workflow.execution_count += 1
        if success:
            workflow.success_count += 1
        else:
            workflow.error_count += 1

        metadata = workflow.metadata
        metadata.average_execution_time = (
            metadata.average_execution_time * (workflow.execution_count - 1) + execution_time
        ) / workflow.execution_count
        metadata.last_execution_time = execution_time
        metadata.success_rate = workflow.success_count / workflow.execution_count * 100
        workflow.last_executed_at = datetime.now(timezone.utc)
        workflow.status = WorkflowStatus.ACTIVE if success else WorkflowStatus.ERROR

        if self.workflows is not None:
            await self.workflows.save(workflow)

    async def _record_step_failure(self, workflow: IntegrationWorkflow, step: Any, result: StepResult) -> None:
        await self.events.record(IntegrationEvent(
            integration_id=_integration_of(step),
            workflow_id=workflow.id,
            type="workflow_step_error",
            severity=EventSeverity.MEDIUM,
            title="Workflow Step Failed",
            description=f"{step.label}: {result.error}",
            data={"workflowId": workflow.id, "stepId": step.id, "attempts": result.attempts},
        ))

    async def _record_workflow_error(
        self,
        workflow: IntegrationWorkflow,
        step: Any,
        error: Exception,
        data: Any
    ) -> None:
        await self.events.record(IntegrationEvent(
            integration_id=_integration_of(step),
            workflow_id=workflow.id,
            type="workflow_error",
            severity=EventSeverity.HIGH,
            title="Workflow Execution Failed",
            description=str(error),
            data={
                "workflowId": workflow.id,
                "stepId": getattr(step, "id", None),
                "data": data,
            },
        ))


def _integration_of(step: Any) -> Optional[str]:
    if step is not None and step.type == "api_call":
        return step.config.integration_id
    return None

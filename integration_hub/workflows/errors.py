from typing import Any, List, Optional


class WorkflowError(Exception):
    """Base exception for workflow engine errors."""
    pass


class WorkflowStepError(WorkflowError):
    """A step cannot run as configured; retrying will not help."""
    pass


class TransformError(WorkflowStepError):
    """Unsupported transformation or aggregation."""
    pass


class ConditionError(WorkflowStepError):
    """Malformed condition."""
    pass


class StepTimeoutError(WorkflowError):
    """A step exceeded its time budget."""

    def __init__(self, step_name: str, timeout: float) -> None:
        super().__init__(f"Step {step_name} timed out after {timeout}s")
        self.step_name = step_name
        self.timeout = timeout


class WebhookError(WorkflowError):
    """A webhook answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str, body: Optional[str] = None) -> None:
        super().__init__(f"Webhook failed: {status_code} {reason}")
        self.status_code = status_code
        self.reason = reason
        self.body = body


class WorkflowExecutionError(WorkflowError):
    """The workflow run was aborted."""

    def __init__(
        self,
        message: str,
        workflow_id: str,
        step_id: Optional[str] = None,
        results: Optional[List[Any]] = None,
        execution_time: float = 0.0
    ) -> None:
        super().__init__(message)
        self.workflow_id = workflow_id
        self.step_id = step_id
        self.results = results or []
        self.execution_time = execution_time

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..integrations.base import IntegrationStatus


def _new_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HubModel(BaseModel):
    """Accepts both snake_case and the camelCase keys sent by the admin console."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Enums
class WorkflowStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    RUNNING = "running"
    ERROR = "error"

class ErrorHandling(str, Enum):
    STOP = "stop"
    CONTINUE = "continue"
    RETRY = "retry"

class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

class EventSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EXISTS = "exists"


# Conditions
class Condition(HubModel):
    """A single ``field operator value`` predicate; field is a dotted path."""

    field: str
    operator: ConditionOperator
    value: Any = None


class RetryConfig(HubModel):
    attempts: int = Field(default=3, ge=0, le=10)
    delay: float = Field(default=1.0, ge=0.0)  # seconds
    backoff: Literal["linear", "exponential"] = "exponential"
    max_delay: float = Field(default=30.0, ge=0.0)


# Data transforms
class MapTransform(HubModel):
    type: Literal["map"] = "map"
    mapping: Dict[str, str]

class FilterTransform(HubModel):
    type: Literal["filter"] = "filter"
    conditions: List[Condition] = Field(default_factory=list)

class AggregateTransform(HubModel):
    type: Literal["aggregate"] = "aggregate"
    field: str
    operation: Literal["sum", "average", "count", "min", "max"]

class FormatTransform(HubModel):
    type: Literal["format"] = "format"
    format: Literal["json", "csv", "template"]
    template: Optional[str] = None

Transform = Annotated[
    Union[MapTransform, FilterTransform, AggregateTransform, FormatTransform],
    Field(discriminator="type"),
]


# Notifications
class EmailNotification(HubModel):
    type: Literal["email"] = "email"
    to: List[str]
    subject: str
    template: Optional[str] = None

class SlackNotification(HubModel):
    type: Literal["slack"] = "slack"
    channel: str
    template: Optional[str] = None
    token: Optional[str] = None

class WebhookNotification(HubModel):
    type: Literal["webhook"] = "webhook"
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)

Notification = Annotated[
    Union[EmailNotification, SlackNotification, WebhookNotification],
    Field(discriminator="type"),
]


# Step configs
class ApiCallConfig(HubModel):
    integration_id: str
    endpoint: str
    method: str = "get"
    body: Optional[Any] = None

class ConditionConfig(HubModel):
    conditions: List[Condition] = Field(default_factory=list)
    true_action: Optional["WorkflowStep"] = None
    false_action: Optional["WorkflowStep"] = None

class WebhookConfig(HubModel):
    url: str
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None


# Steps
PIPING_STEP_TYPES = ("api_call", "data_transform")

class StepBase(HubModel):
    id: str = Field(default_factory=_new_id)
    name: str = ""
    order: int = 0
    timeout: Optional[float] = Field(default=None, gt=0)  # seconds
    retry_config: Optional[RetryConfig] = None
    # Read a specific earlier step's output instead of the running data
    input_from: Optional[str] = None
    pipe_output: Optional[bool] = None

    @property
    def label(self) -> str:
        return self.name or self.id

    @property
    def pipes_output(self) -> bool:
        if self.pipe_output is not None:
            return self.pipe_output
        return self.type in PIPING_STEP_TYPES

class ApiCallStep(StepBase):
    type: Literal["api_call"] = "api_call"
    config: ApiCallConfig

class DataTransformStep(StepBase):
    type: Literal["data_transform"] = "data_transform"
    config: Transform

class ConditionStep(StepBase):
    type: Literal["condition"] = "condition"
    config: ConditionConfig

class NotificationStep(StepBase):
    type: Literal["notification"] = "notification"
    config: Notification

class WebhookStep(StepBase):
    type: Literal["webhook"] = "webhook"
    config: WebhookConfig

WorkflowStep = Annotated[
    Union[ApiCallStep, DataTransformStep, ConditionStep, NotificationStep, WebhookStep],
    Field(discriminator="type"),
]

ConditionConfig.model_rebuild()
ConditionStep.model_rebuild()


# Workflows
class WorkflowConfig(HubModel):
    timeout: Optional[float] = Field(default=None, gt=0)  # seconds, whole run
    retry_attempts: int = Field(default=3, ge=0, le=10)
    retry_delay: float = Field(default=1.0, ge=0.0)
    error_handling: ErrorHandling = ErrorHandling.STOP

class WorkflowMetadata(HubModel):
    average_execution_time: float = 0.0
    last_execution_time: Optional[float] = None
    success_rate: float = 0.0

class IntegrationWorkflow(HubModel):
    id: str = Field(default_factory=_new_id)
    organization_id: Optional[str] = None
    name: str
    description: str = ""
    status: WorkflowStatus = WorkflowStatus.ACTIVE
    steps: List[WorkflowStep] = Field(default_factory=list)
    config: WorkflowConfig = Field(default_factory=WorkflowConfig)
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)
    execution_count: int = 0
    success_count: int = 0
    error_count: int = 0
    last_executed_at: Optional[datetime] = None

    @field_validator("steps")
    @classmethod
    def validate_steps(cls, steps: List[Any]) -> List[Any]:
        orders = [step.order for step in steps]
        if len(orders) != len(set(orders)):
            raise ValueError("Step order values must be unique")
        ids = [step.id for step in steps]
        if len(ids) != len(set(ids)):
            raise ValueError("Step ids must be unique")
        return steps

    def ordered_steps(self) -> List[Any]:
        return sorted(self.steps, key=lambda step: step.order)


# Integrations
class Integration(HubModel):
    id: str = Field(default_factory=_new_id)
    organization_id: Optional[str] = None
    name: str
    type: str = "custom"
    provider: str
    status: IntegrationStatus = IntegrationStatus.ACTIVE
    config: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    last_sync_at: Optional[datetime] = None
    last_error_at: Optional[datetime] = None
    last_error_message: Optional[str] = None


class IntegrationEvent(HubModel):
    id: str = Field(default_factory=_new_id)
    integration_id: Optional[str] = None
    workflow_id: Optional[str] = None
    type: str
    severity: EventSeverity
    title: str
    description: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)
    resolved: bool = False


class TestResult(HubModel):
    """Outcome of one connection test; never persisted."""

    __test__ = False  # not a pytest test class

    timestamp: datetime = Field(default_factory=_utcnow)
    success: bool
    response_time: float  # milliseconds
    status_code: Optional[int] = None
    response: Optional[Any] = None
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class StepResult(HubModel):
    step_id: str
    name: str
    type: str
    success: bool
    output: Any = None
    error: Optional[str] = None
    attempts: int = 1
    duration_ms: float = 0.0


class WorkflowRunResult(HubModel):
    workflow_id: str
    success: bool
    status: RunStatus
    results: List[StepResult] = Field(default_factory=list)
    execution_time: float = 0.0  # milliseconds

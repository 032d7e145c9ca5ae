"""Single step dispatch for integration workflows."""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx

from ..integrations.base import IntegrationError, IntegrationStatus, validate_url
from ..integrations.registry import ProviderRegistry
from ..persistence.repository import IntegrationRepository
from ..utils.logging import get_logger
from .conditions import evaluate_conditions
from .errors import WebhookError, WorkflowStepError
from .models import ApiCallStep, ConditionStep, DataTransformStep, Integration, NotificationStep, WebhookStep
from .notifications import Notifier
from .transforms import run_transform

logger = get_logger(__name__)

API_METHODS = ("get", "post", "put", "delete")
DISABLED_STATUSES = (IntegrationStatus.INACTIVE, IntegrationStatus.DISCONNECTED)


class IntegrationLocks:
    """One lock per integration id; provider calls for an integration run one at a time.

    An entry lives only while some caller holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, integration_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(integration_id)
        if lock is None:
            lock = self._locks[integration_id] = asyncio.Lock()
        self._users[integration_id] = self._users.get(integration_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[integration_id] -= 1
            if not self._users[integration_id]:
                del self._users[integration_id]
                del self._locks[integration_id]


class StepExecutor:
    """Runs one workflow step against its handler.

    Handlers are keyed by step type. Nested condition actions are executed
    recursively up to ``max_condition_depth`` levels.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        integrations: IntegrationRepository,
        notifier: Notifier,
        http_client: httpx.AsyncClient,
        locks: Optional[IntegrationLocks] = None,
        max_condition_depth: int = 8
    ) -> None:
        self.registry = registry
        self.integrations = integrations
        self.notifier = notifier
        self.http_client = http_client
        self.locks = locks or IntegrationLocks()
        self.max_condition_depth = max_condition_depth
        self._handlers: Dict[str, Callable[[Any, Any, int], Awaitable[Any]]] = {
            "api_call": self._execute_api_call,
            "data_transform": self._execute_data_transform,
            "condition": self._execute_condition,
            "notification": self._execute_notification,
            "webhook": self._execute_webhook,
        }

    async def execute_step(self, step: Any, data: Any = None, depth: int = 0) -> Any:
        handler = self._handlers.get(getattr(step, "type", None))
        if handler is None:
            raise WorkflowStepError(f"Unknown workflow step type: {getattr(step, 'type', step)}")

        logger.debug(f"Executing step {step.label} ({step.type})")
        return await handler(step, data, depth)

    async def _execute_api_call(self, step: ApiCallStep, data: Any, depth: int) -> Any:
        config = step.config
        method = (config.method or "").lower()
        if method not in API_METHODS:
            raise WorkflowStepError(f"Unsupported HTTP method: {config.method}")

        payload = config.body if config.body is not None else data

        async with self.locks.hold(config.integration_id):
            integration = await self.integrations.get(config.integration_id)
            if integration is None:
                raise WorkflowStepError(f"Integration {config.integration_id} not found")
            if integration.status in DISABLED_STATUSES:
                raise WorkflowStepError(
                    f"Integration {integration.id} is {integration.status.value}"
                )

            adapter = self.registry.resolve(integration.provider)

            try:
                if method == "get":
                    params = payload if isinstance(payload, dict) else None
                    result = await adapter.get_data(integration.config, config.endpoint, params)
                elif method == "post":
                    result = await adapter.post_data(integration.config, config.endpoint, payload)
                elif method == "put":
                    result = await adapter.put_data(integration.config, config.endpoint, payload)
                else:
                    result = await adapter.delete_data(integration.config, config.endpoint)
            except IntegrationError as e:
                await self._mark_integration_error(integration, str(e))
                raise

            await self._mark_integration_synced(integration)

        return result

    async def _execute_data_transform(self, step: DataTransformStep, data: Any, depth: int) -> Any:
        return run_transform(data, step.config)

    async def _execute_condition(self, step: ConditionStep, data: Any, depth: int) -> Any:
        config = step.config
        matched = evaluate_conditions(config.conditions, data)
        action = config.true_action if matched else config.false_action

        if action is None:
            return matched

        if depth + 1 > self.max_condition_depth:
            raise WorkflowStepError(
                f"Condition step {step.label} nests deeper than {self.max_condition_depth} levels"
            )
        return await self.execute_step(action, data, depth + 1)

    async def _execute_notification(self, step: NotificationStep, data: Any, depth: int) -> Any:
        return await self.notifier.send(step.config, data)

    async def _execute_webhook(self, step: WebhookStep, data: Any, depth: int) -> Any:
        config = step.config
        if not validate_url(config.url):
            raise WorkflowStepError(f"Webhook step {step.label} has an invalid url: {config.url}")
        body = config.body if config.body is not None else data

        response = await self.http_client.request(
            config.method or "POST",
            config.url,
            headers={"Content-Type": "application/json", **config.headers},
            content=json.dumps(body, default=str)
        )

        if not response.is_success:
            raise WebhookError(response.status_code, response.reason_phrase, response.text)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return response.text

    async def _mark_integration_synced(self, integration: Integration) -> None:
        now = datetime.now(timezone.utc)
        await self.integrations.save(integration.model_copy(update={
            "status": IntegrationStatus.ACTIVE,
            "last_sync_at": now,
            "updated_at": now,
        }))

    async def _mark_integration_error(self, integration: Integration, message: str) -> None:
        now = datetime.now(timezone.utc)
        logger.error(f"Provider call failed for integration {integration.id}: {message}")
        await self.integrations.save(integration.model_copy(update={
            "status": IntegrationStatus.ERROR,
            "last_error_at": now,
            "last_error_message": message,
            "updated_at": now,
        }))

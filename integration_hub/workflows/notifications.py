"""Notification channels used by ``notification`` steps."""

import asyncio
import json
from typing import Any, Callable, Dict, Optional

import httpx
import resend
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from ..utils.logging import get_logger
from .errors import WebhookError, WorkflowStepError
from .models import EmailNotification, SlackNotification, WebhookNotification
from .transforms import apply_template

logger = get_logger(__name__)


def render_message(template: Optional[str], data: Any) -> str:
    if template:
        return apply_template(data, template)
    return json.dumps(data, indent=2, default=str)


class Notifier:
    """Sends email (Resend), Slack and webhook notifications."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        resend_api_key: Optional[str] = None,
        email_from: str = "Integration Hub <noreply@example.com>",
        slack_token: Optional[str] = None,
        slack_client_factory: Optional[Callable[..., AsyncWebClient]] = None
    ) -> None:
        self.http_client = http_client
        self.resend_api_key = resend_api_key
        self.email_from = email_from
        self.slack_token = slack_token
        self._slack_client_factory = slack_client_factory or AsyncWebClient

    async def send_email(self, notification: EmailNotification, data: Any) -> Dict[str, Any]:
        if not self.resend_api_key:
            raise WorkflowStepError("Email notifications require RESEND_API_KEY")

        body = render_message(notification.template, data)
        params = {
            "from": self.email_from,
            "to": notification.to,
            "subject": apply_template(data, notification.subject),
            "text": body,
        }

        def _send() -> Any:
            resend.api_key = self.resend_api_key
            return resend.Emails.send(params)

        response = await asyncio.to_thread(_send)
        logger.info(f"Email notification sent to {len(notification.to)} recipient(s)")
        return {"success": True, "type": "email", "id": _get(response, "id")}

    async def send_slack(self, notification: SlackNotification, data: Any) -> Dict[str, Any]:
        token = notification.token or self.slack_token
        if not token:
            raise WorkflowStepError("Slack notifications require a bot token")

        client = self._slack_client_factory(token=token)
        try:
            response = await client.chat_postMessage(
                channel=notification.channel,
                text=render_message(notification.template, data)
            )
        except SlackApiError as e:
            raise WorkflowStepError(f"Slack notification failed: {str(e)}") from e

        logger.info(f"Slack notification posted to {notification.channel}")
        return {"success": True, "type": "slack", "ts": response.get("ts")}

    async def send_webhook(self, notification: WebhookNotification, data: Any) -> Dict[str, Any]:
        response = await self.http_client.post(
            notification.url,
            headers={"Content-Type": "application/json", **notification.headers},
            content=json.dumps(data, default=str)
        )
        if not response.is_success:
            raise WebhookError(response.status_code, response.reason_phrase, response.text)

        logger.info(f"Webhook notification delivered to {notification.url}")
        return {"success": True, "type": "webhook", "status_code": response.status_code}

    async def send(self, notification: Any, data: Any) -> Dict[str, Any]:
        if isinstance(notification, EmailNotification):
            return await self.send_email(notification, data)
        if isinstance(notification, SlackNotification):
            return await self.send_slack(notification, data)
        if isinstance(notification, WebhookNotification):
            return await self.send_webhook(notification, data)
        raise WorkflowStepError(
            f"Unknown notification type: {getattr(notification, 'type', notification)}"
        )


def _get(response: Any, key: str) -> Any:
    if isinstance(response, dict):
        return response.get(key)
    return getattr(response, key, None)

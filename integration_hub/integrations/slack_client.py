from __future__ import annotations

from typing import Dict, Any, List, Optional, Callable

from pydantic import BaseModel
from slack_sdk.web.async_client import AsyncWebClient
from slack_sdk.errors import SlackApiError

from .base import (
    ProviderAdapter,
    AuthenticationError,
    IntegrationError
)

class SlackChannel(BaseModel):
    """Slack channel representation."""

    id: str
    name: str
    is_private: bool = False
    is_member: bool = False
    num_members: int = 0

class SlackError(IntegrationError):
    """Slack-specific error."""
    pass

ClientFactory = Callable[..., AsyncWebClient]

class SlackAdapter(ProviderAdapter):
    """
    Slack Web API adapter.

    Endpoints are Web API method names (``chat.postMessage``,
    ``conversations.history``). Reads are sent as GET with query params,
    writes as POST with a JSON body.
    """

    provider = "slack"
    name = "Slack"
    base_url = "https://slack.com/api/"
    sensitive_keys = ["accessToken", "botToken"]

    def __init__(
        self,
        client_factory: Optional[ClientFactory] = None,
        **kwargs
    ) -> None:
        super().__init__(**kwargs)
        self._client_factory = client_factory or AsyncWebClient

    def _web_client(self, config: Dict[str, Any]) -> AsyncWebClient:
        token = config.get("botToken") or config.get("accessToken")
        if not token:
            raise AuthenticationError("No valid token provided", self.provider)
        return self._client_factory(
            token=token,
            base_url=self.base_url,
            timeout=int(self.timeout)
        )

    async def _call(
        self,
        config: Dict[str, Any],
        method: str,
        http_verb: str = "POST",
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        client = self._web_client(config)
        try:
            if http_verb == "GET":
                response = await client.api_call(method, http_verb="GET", params=params)
            else:
                response = await client.api_call(method, http_verb=http_verb, json=json)
        except SlackApiError as e:
            self._update_metrics_failure(str(e))
            error = e.response.get("error") if e.response is not None else None
            if error in ("invalid_auth", "not_authed", "token_revoked", "account_inactive"):
                raise AuthenticationError(
                    f"Slack authentication failed: {error}",
                    self.provider
                ) from e
            raise SlackError(
                f"Slack API error: {str(e)}",
                self.provider
            ) from e

        if not response["ok"]:
            self._update_metrics_failure(str(response.get("error")))
            raise SlackError(
                f"Slack call {method} failed: {response.get('error')}",
                self.provider,
                response_data=response.data
            )

        self.metrics.total_requests += 1
        self.metrics.successful_requests += 1
        return response.data

    async def test_connection(self, config: Dict[str, Any]) -> bool:
        """Test Slack connection."""
        if self.validate_config(config):
            return False

        try:
            response = await self._call(config, "auth.test")
            self._logger.debug("Connection test successful, bot: %s", response.get("user"))
            return True
        except IntegrationError as e:
            self._logger.error("Connection test failed: %s", str(e))
            return False

    async def get_data(
        self,
        config: Dict[str, Any],
        endpoint: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        return await self._call(config, endpoint, http_verb="GET", params=params or {})

    async def post_data(self, config: Dict[str, Any], endpoint: str, data: Any) -> Any:
        return await self._call(config, endpoint, json=data or {})

    async def put_data(self, config: Dict[str, Any], endpoint: str, data: Any) -> Any:
        # Slack has no PUT; update methods (chat.update, ...) are POSTs
        return await self._call(config, endpoint, json=data or {})

    async def delete_data(self, config: Dict[str, Any], endpoint: str) -> bool:
        """Call a delete style method such as ``chat.delete?channel=C1&ts=1.2``."""
        method, _, query = endpoint.partition("?")
        payload = dict(part.split("=", 1) for part in query.split("&") if "=" in part)
        response = await self._call(config, method, json=payload)
        return bool(response.get("ok", False))

    async def get_schema(self, config: Dict[str, Any]) -> Any:
        """List the channels visible to the token."""
        response = await self._call(
            config,
            "conversations.list",
            http_verb="GET",
            params={"exclude_archived": "true", "types": "public_channel,private_channel"}
        )
        channels = [
            SlackChannel(
                id=channel["id"],
                name=channel.get("name", ""),
                is_private=channel.get("is_private", False),
                is_member=channel.get("is_member", False),
                num_members=channel.get("num_members", 0)
            ).model_dump()
            for channel in response.get("channels", [])
        ]
        return {"channels": channels}

    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        if config.get("accessToken") or config.get("botToken"):
            return []
        return ["Access token is required"]

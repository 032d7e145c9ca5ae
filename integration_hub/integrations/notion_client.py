"""
Notion adapter for Integration Hub
Handles pages, databases and database schema discovery
"""

from typing import Dict, List, Optional, Any

from .base import ProviderAdapter, IntegrationError


class NotionAdapter(ProviderAdapter):
    """Notion REST adapter"""

    provider = "notion"
    name = "Notion"
    base_url = "https://api.notion.com/v1"
    sensitive_keys = ["integrationToken"]

    def __init__(self, notion_version: str = "2022-06-28", **kwargs) -> None:
        super().__init__(**kwargs)
        self.notion_version = notion_version

    def _get_auth_headers(self, config: Dict[str, Any]) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {config.get('integrationToken', '')}",
            "Notion-Version": self.notion_version,
        }

    async def test_connection(self, config: Dict[str, Any]) -> bool:
        """Test Notion connection with the bot user lookup"""
        if self.validate_config(config):
            return False

        try:
            await self._make_request("GET", config, "/users/me")
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
        """Read a page, block or database; database queries are POSTs in Notion"""
        if endpoint.rstrip("/").endswith("/query"):
            return await self._request_json("POST", config, endpoint, json=params or {})
        return await self._request_json("GET", config, endpoint, params=params or None)

    async def post_data(self, config: Dict[str, Any], endpoint: str, data: Any) -> Any:
        return await self._request_json("POST", config, endpoint, json=data)

    async def put_data(self, config: Dict[str, Any], endpoint: str, data: Any) -> Any:
        return await self._request_json("PATCH", config, endpoint, json=data)

    async def delete_data(self, config: Dict[str, Any], endpoint: str) -> bool:
        """Archive a page or delete a block"""
        if endpoint.lstrip("/").startswith("pages/"):
            result = await self._request_json("PATCH", config, endpoint, json={"archived": True})
            return bool(result.get("archived", True)) if isinstance(result, dict) else True
        await self._request_json("DELETE", config, endpoint)
        return True

    async def get_schema(self, config: Dict[str, Any]) -> Any:
        """Get the configured database properties or every shared database"""
        database_id = config.get("databaseId")
        if database_id:
            database = await self._request_json("GET", config, f"/databases/{database_id}")
            return {"databases": [database]}

        result = await self._request_json(
            "POST",
            config,
            "/search",
            json={"filter": {"property": "object", "value": "database"}}
        )
        return {"databases": result.get("results", []) if isinstance(result, dict) else []}

    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        return self._require(config, "integrationToken", "Integration token")

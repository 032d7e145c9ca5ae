"""
Airtable adapter for Integration Hub
Handles records and base schema discovery
"""

from typing import Dict, List, Optional, Any

from .base import ProviderAdapter, IntegrationError


class AirtableAdapter(ProviderAdapter):
    """Airtable REST adapter; endpoints are table names or record paths inside the base"""

    provider = "airtable"
    name = "Airtable"
    base_url = "https://api.airtable.com"

    def _get_auth_headers(self, config: Dict[str, Any]) -> Dict[str, str]:
        return {"Authorization": f"Bearer {config.get('apiKey', '')}"}

    def _records_path(self, config: Dict[str, Any], endpoint: str) -> str:
        return f"/v0/{config.get('baseId', '')}/{endpoint.lstrip('/')}"

    async def test_connection(self, config: Dict[str, Any]) -> bool:
        """Test Airtable connection by listing the base tables"""
        if self.validate_config(config):
            return False

        try:
            await self._make_request(
                "GET", config, f"/v0/meta/bases/{config['baseId']}/tables"
            )
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
        """List records of a table or fetch a single record"""
        return await self._request_json(
            "GET", config, self._records_path(config, endpoint), params=params or None
        )

    async def post_data(self, config: Dict[str, Any], endpoint: str, data: Any) -> Any:
        """Create records; a bare fields dict is wrapped in the records envelope"""
        return await self._request_json(
            "POST", config, self._records_path(config, endpoint), json=self._wrap_records(data)
        )

    async def put_data(self, config: Dict[str, Any], endpoint: str, data: Any) -> Any:
        """Update records"""
        return await self._request_json(
            "PATCH", config, self._records_path(config, endpoint), json=self._wrap_records(data)
        )

    async def delete_data(self, config: Dict[str, Any], endpoint: str) -> bool:
        """Delete a record"""
        result = await self._request_json(
            "DELETE", config, self._records_path(config, endpoint)
        )
        return bool(result.get("deleted", True)) if isinstance(result, dict) else True

    async def get_schema(self, config: Dict[str, Any]) -> Any:
        """Get the tables and fields of the configured base"""
        return await self._request_json(
            "GET", config, f"/v0/meta/bases/{config.get('baseId', '')}/tables"
        )

    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        errors = self._require(config, "apiKey", "API key")
        errors += self._require(config, "baseId", "Base ID")
        return errors

    @staticmethod
    def _wrap_records(data: Any) -> Any:
        if isinstance(data, dict) and "records" not in data and "fields" not in data:
            return {"records": [{"fields": data}]}
        if isinstance(data, list):
            return {"records": [item if "fields" in item else {"fields": item} for item in data]}
        return data

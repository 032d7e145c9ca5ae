"""
Stripe adapter for Integration Hub
Handles customers, payments and subscriptions over the form-encoded REST API
"""

from typing import Dict, List, Optional, Any

from .base import ProviderAdapter, IntegrationError


class StripeAdapter(ProviderAdapter):
    """Stripe REST adapter; Stripe updates resources with POST"""

    provider = "stripe"
    name = "Stripe"
    base_url = "https://api.stripe.com/v1"

    def _get_auth_headers(self, config: Dict[str, Any]) -> Dict[str, str]:
        return {"Authorization": f"Bearer {config.get('secretKey', '')}"}

    async def test_connection(self, config: Dict[str, Any]) -> bool:
        """Test Stripe connection by reading the account balance"""
        if self.validate_config(config):
            return False

        try:
            await self._make_request("GET", config, "/balance")
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
        return await self._request_json("GET", config, endpoint, params=params or None)

    async def post_data(self, config: Dict[str, Any], endpoint: str, data: Any) -> Any:
        return await self._request_json("POST", config, endpoint, data=flatten_form(data or {}))

    async def put_data(self, config: Dict[str, Any], endpoint: str, data: Any) -> Any:
        return await self._request_json("POST", config, endpoint, data=flatten_form(data or {}))

    async def delete_data(self, config: Dict[str, Any], endpoint: str) -> bool:
        result = await self._request_json("DELETE", config, endpoint)
        return bool(result.get("deleted", True)) if isinstance(result, dict) else True

    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        errors = self._require(config, "publishableKey", "Publishable key")
        errors += self._require(config, "secretKey", "Secret key")

        secret = config.get("secretKey")
        if isinstance(secret, str) and secret and not secret.startswith(("sk_", "rk_")):
            errors.append("Secret key must start with sk_ or rk_")
        return errors


def flatten_form(data: Dict[str, Any], prefix: str = "") -> Dict[str, str]:
    """Flatten nested dicts/lists into Stripe's bracketed form keys (metadata[plan]=pro)."""
    flat: Dict[str, str] = {}
    for key, value in data.items():
        full_key = f"{prefix}[{key}]" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_form(value, full_key))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_key = f"{full_key}[{index}]"
                if isinstance(item, dict):
                    flat.update(flatten_form(item, item_key))
                else:
                    flat[item_key] = _form_value(item)
        elif value is not None:
            flat[full_key] = _form_value(value)
    return flat


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)

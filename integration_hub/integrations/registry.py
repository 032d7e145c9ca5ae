from typing import Dict, List, Optional

import httpx

from ..config import Settings
from ..utils.logging import get_logger
from .airtable_client import AirtableAdapter
from .base import ProviderAdapter, ProviderNotSupportedError
from .notion_client import NotionAdapter
from .slack_client import SlackAdapter
from .stripe_client import StripeAdapter

logger = get_logger(__name__)


class ProviderRegistry:
    """Maps provider ids to adapter instances.

    Populate it once at startup; lookups during workflow execution are
    read-only.
    """

    def __init__(self, adapters: Optional[List[ProviderAdapter]] = None):
        self._adapters: Dict[str, ProviderAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> None:
        """Register an adapter; a later registration for the same provider wins."""
        if adapter.provider in self._adapters:
            logger.info(f"Replacing adapter for provider {adapter.provider}")
        self._adapters[adapter.provider] = adapter

    def resolve(self, provider: str) -> ProviderAdapter:
        key = getattr(provider, "value", provider)
        try:
            return self._adapters[key]
        except KeyError:
            raise ProviderNotSupportedError(key) from None

    def providers(self) -> List[str]:
        return sorted(self._adapters)

    def __contains__(self, provider: object) -> bool:
        return getattr(provider, "value", provider) in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)

    async def close(self) -> None:
        for adapter in self._adapters.values():
            await adapter.close()


def create_default_registry(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None
) -> ProviderRegistry:
    """Build the registry with every built-in provider adapter."""
    common = {"timeout": settings.http_timeout, "client": client}
    return ProviderRegistry([
        AirtableAdapter(base_url=settings.airtable_base_url, **common),
        SlackAdapter(base_url=settings.slack_base_url, timeout=settings.http_timeout),
        NotionAdapter(
            notion_version=settings.notion_version,
            base_url=settings.notion_base_url,
            **common
        ),
        StripeAdapter(base_url=settings.stripe_base_url, **common),
    ])

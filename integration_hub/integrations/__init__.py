"""
Provider adapters for Integration Hub.

Every third-party service is wrapped in a ``ProviderAdapter`` with the same
capability set (test connection, CRUD, schema, config validation):
- Airtable
- Slack
- Notion
- Stripe
"""

from .base import (
    ProviderAdapter,
    IntegrationError,
    IntegrationStatus,
    IntegrationProvider,
    ProviderNotSupportedError,
    UnsupportedOperationError,
)
from .airtable_client import AirtableAdapter
from .notion_client import NotionAdapter
from .slack_client import SlackAdapter, SlackError
from .stripe_client import StripeAdapter
from .registry import ProviderRegistry, create_default_registry

__all__ = [
    "ProviderAdapter",
    "IntegrationError",
    "IntegrationStatus",
    "IntegrationProvider",
    "ProviderNotSupportedError",
    "UnsupportedOperationError",
    "AirtableAdapter",
    "NotionAdapter",
    "SlackAdapter",
    "SlackError",
    "StripeAdapter",
    "ProviderRegistry",
    "create_default_registry",
]

"""Catalogue of the built-in integration templates shown by the admin console."""

from typing import Any, Dict, List, Literal

from pydantic import Field

from ..workflows.models import HubModel


class Capability(HubModel):
    name: str
    description: str
    supported: bool = True
    requires_auth: bool = True


class SetupStep(HubModel):
    id: str
    title: str
    description: str
    type: Literal["oauth", "api_key", "webhook", "custom"]
    required: bool = True


class TemplateExample(HubModel):
    name: str
    description: str
    config: Dict[str, Any]
    use_case: str


class IntegrationTemplate(HubModel):
    id: str
    name: str
    description: str
    provider: str
    type: str
    category: str
    icon: str
    color: str
    capabilities: List[Capability] = Field(default_factory=list)
    setup_steps: List[SetupStep] = Field(default_factory=list)
    config_schema: Dict[str, Any] = Field(default_factory=dict)
    examples: List[TemplateExample] = Field(default_factory=list)
    popularity: int = 0
    rating: float = 0.0
    is_official: bool = True
    is_beta: bool = False


def _string_schema(properties: Dict[str, str], required: List[str]) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            key: {"type": "string", "title": title}
            for key, title in properties.items()
        },
        "required": required,
    }


INTEGRATION_TEMPLATES: List[IntegrationTemplate] = [
    IntegrationTemplate(
        id="airtable-database",
        name="Airtable Database",
        description="Connect to Airtable for database operations and data analysis",
        provider="airtable",
        type="database",
        category="Database",
        icon="database",
        color="#FF6B6B",
        capabilities=[
            Capability(name="Read Data", description="Read records from tables"),
            Capability(name="Write Data", description="Create and update records"),
            Capability(
                name="Real-time Sync",
                description="Real-time data synchronization",
                supported=False,
                requires_auth=False,
            ),
        ],
        setup_steps=[
            SetupStep(id="api-key", title="API Key", description="Enter your Airtable API key", type="api_key"),
            SetupStep(
                id="base-selection",
                title="Select Base",
                description="Choose which Airtable base to connect",
                type="custom",
            ),
        ],
        config_schema=_string_schema({"apiKey": "API Key", "baseId": "Base ID"}, ["apiKey", "baseId"]),
        examples=[
            TemplateExample(
                name="Customer Database",
                description="Connect to a customer database for CRM operations",
                config={"apiKey": "your_api_key", "baseId": "your_base_id"},
                use_case="CRM and customer management",
            ),
        ],
        popularity=95,
        rating=4.8,
    ),
    IntegrationTemplate(
        id="slack-communication",
        name="Slack Communication",
        description="Integrate with Slack for team communication and notifications",
        provider="slack",
        type="communication",
        category="Communication",
        icon="message-circle",
        color="#4A154B",
        capabilities=[
            Capability(name="Send Messages", description="Send messages to channels and users"),
            Capability(name="Receive Webhooks", description="Receive webhook notifications"),
            Capability(name="File Sharing", description="Share files and documents"),
        ],
        setup_steps=[
            SetupStep(
                id="oauth",
                title="OAuth Authorization",
                description="Authorize access to your Slack workspace",
                type="oauth",
            ),
        ],
        config_schema=_string_schema(
            {"accessToken": "Access Token", "botToken": "Bot Token"},
            ["accessToken"]
        ),
        examples=[
            TemplateExample(
                name="Team Notifications",
                description="Send automated notifications to team channels",
                config={"accessToken": "your_access_token"},
                use_case="Team communication and alerts",
            ),
        ],
        popularity=88,
        rating=4.6,
    ),
    IntegrationTemplate(
        id="notion-project-management",
        name="Notion Project Management",
        description="Connect to Notion for project management and documentation",
        provider="notion",
        type="project_management",
        category="Project Management",
        icon="file-text",
        color="#000000",
        capabilities=[
            Capability(name="Read Pages", description="Read pages and databases"),
            Capability(name="Write Pages", description="Create and update pages"),
            Capability(name="Database Operations", description="Query and modify databases"),
        ],
        setup_steps=[
            SetupStep(
                id="integration-token",
                title="Integration Token",
                description="Create a Notion integration and get the token",
                type="api_key",
            ),
            SetupStep(
                id="page-access",
                title="Page Access",
                description="Grant access to specific pages or databases",
                type="custom",
            ),
        ],
        config_schema=_string_schema(
            {"integrationToken": "Integration Token", "databaseId": "Database ID"},
            ["integrationToken"]
        ),
        examples=[
            TemplateExample(
                name="Project Tracker",
                description="Connect to a project tracking database",
                config={"integrationToken": "your_token", "databaseId": "your_database_id"},
                use_case="Project management and task tracking",
            ),
        ],
        popularity=82,
        rating=4.7,
    ),
    IntegrationTemplate(
        id="stripe-ecommerce",
        name="Stripe E-commerce",
        description="Integrate with Stripe for payment processing and e-commerce",
        provider="stripe",
        type="ecommerce",
        category="E-commerce",
        icon="credit-card",
        color="#6772E5",
        capabilities=[
            Capability(name="Payment Processing", description="Process payments and subscriptions"),
            Capability(name="Customer Management", description="Manage customers and their data"),
            Capability(name="Webhook Events", description="Receive payment and subscription events"),
        ],
        setup_steps=[
            SetupStep(id="api-keys", title="API Keys", description="Enter your Stripe API keys", type="api_key"),
            SetupStep(
                id="webhook-endpoint",
                title="Webhook Endpoint",
                description="Configure webhook endpoint for events",
                type="webhook",
                required=False,
            ),
        ],
        config_schema=_string_schema(
            {
                "publishableKey": "Publishable Key",
                "secretKey": "Secret Key",
                "webhookSecret": "Webhook Secret",
            },
            ["publishableKey", "secretKey"]
        ),
        examples=[
            TemplateExample(
                name="Payment Processing",
                description="Process payments and manage subscriptions",
                config={"publishableKey": "pk_...", "secretKey": "sk_..."},
                use_case="E-commerce and subscription management",
            ),
        ],
        popularity=90,
        rating=4.9,
    ),
]

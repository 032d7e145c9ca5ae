from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List
from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from contextlib import asynccontextmanager

import httpx
from pydantic import BaseModel

# Enums
class IntegrationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"
    SYNCING = "syncing"
    DISCONNECTED = "disconnected"

class IntegrationProvider(str, Enum):
    AIRTABLE = "airtable"
    SLACK = "slack"
    NOTION = "notion"
    STRIPE = "stripe"
    CUSTOM = "custom"

# Data models
class RateLimitInfo(BaseModel):
    """Rate limit tracking information."""

    limit: int
    remaining: int
    reset_at: datetime

    @property
    def is_exceeded(self) -> bool:
        """Check if rate limit is exceeded."""
        return self.remaining <= 0 and datetime.now(timezone.utc) < self.reset_at

class IntegrationMetrics(BaseModel):
    """Adapter performance metrics."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time: float = 0.0
    last_error: Optional[str] = None
    last_success: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Calculate success rate percentage."""
        if self.total_requests == 0:
            return 0.0
        return (self.successful_requests / self.total_requests) * 100

# Custom exceptions
class IntegrationError(Exception):
    """Base exception for integration errors."""

    def __init__(
        self,
        message: str,
        integration_name: str,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.integration_name = integration_name
        self.status_code = status_code
        self.response_data = response_data
        self.timestamp = datetime.now(timezone.utc)

class AuthenticationError(IntegrationError):
    """Authentication failed."""
    pass

class AuthorizationError(IntegrationError):
    """Authorization/permission denied."""
    pass

class RateLimitError(IntegrationError):
    """Rate limit exceeded."""

    def __init__(
        self,
        message: str,
        integration_name: str,
        reset_at: datetime,
        **kwargs
    ) -> None:
        super().__init__(message, integration_name, **kwargs)
        self.reset_at = reset_at

class ValidationError(IntegrationError):
    """Data validation failed."""
    pass

class NetworkError(IntegrationError):
    """Network/connectivity error."""
    pass

class UnsupportedOperationError(IntegrationError):
    """The provider does not offer this capability."""
    pass

class ProviderNotSupportedError(Exception):
    """No adapter is registered for the requested provider."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider {provider} not supported")
        self.provider = provider

# Base adapter class
class ProviderAdapter(ABC):
    """
    Abstract base class for third-party provider adapters.

    An adapter is stateless with respect to tenants: every call receives the
    integration's configuration blob. It provides:
    - HTTP client management
    - Status code to error mapping
    - Metrics tracking
    - Local configuration validation
    """

    provider: str = ""
    name: str = ""
    base_url: str = ""
    sensitive_keys: List[str] = ["apiKey", "apiSecret", "accessToken", "refreshToken", "secretKey"]

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ) -> None:
        if base_url:
            self.base_url = base_url
        self.timeout = timeout
        self.metrics = IntegrationMetrics()
        self.rate_limit: Optional[RateLimitInfo] = None
        self._client = client
        self._owns_client = client is None
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def test_connection(self, config: Dict[str, Any]) -> bool:
        """Test if the configured credentials reach the provider."""
        pass

    @abstractmethod
    async def get_data(
        self,
        config: Dict[str, Any],
        endpoint: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Read from the provider."""
        pass

    @abstractmethod
    async def post_data(self, config: Dict[str, Any], endpoint: str, data: Any) -> Any:
        """Create on the provider."""
        pass

    @abstractmethod
    async def put_data(self, config: Dict[str, Any], endpoint: str, data: Any) -> Any:
        """Update on the provider."""
        pass

    @abstractmethod
    async def delete_data(self, config: Dict[str, Any], endpoint: str) -> bool:
        """Delete on the provider."""
        pass

    @abstractmethod
    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        """Return human-readable configuration problems, empty when valid."""
        pass

    async def get_schema(self, config: Dict[str, Any]) -> Any:
        """Introspect available tables/objects."""
        raise UnsupportedOperationError(
            f"{self.name} does not support schema introspection",
            self.provider
        )

    @asynccontextmanager
    async def _get_client(self):
        """Get HTTP client with proper lifecycle management."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"User-Agent": "Integration-Hub/1.0", "Accept": "application/json"}
            )

        try:
            yield self._client
        finally:
            # Keep client alive for reuse, close on shutdown
            pass

    def _get_auth_headers(self, config: Dict[str, Any]) -> Dict[str, str]:
        """Provider specific authentication headers."""
        return {}

    def _build_url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    async def _make_request(
        self,
        method: str,
        config: Dict[str, Any],
        endpoint: str,
        **kwargs
    ) -> httpx.Response:
        """
        Make a single HTTP request and map failures to integration errors.

        Args:
            method: HTTP method
            config: Integration configuration used for authentication
            endpoint: Path relative to the adapter base URL
            **kwargs: Additional request parameters

        Returns:
            HTTP response

        Raises:
            Various IntegrationError subclasses
        """
        if self.rate_limit and self.rate_limit.is_exceeded:
            raise RateLimitError(
                f"Rate limit exceeded for {self.name}",
                self.provider,
                self.rate_limit.reset_at
            )

        url = self._build_url(endpoint)
        headers = {**self._get_auth_headers(config), **kwargs.pop("headers", {})}
        start_time = datetime.now(timezone.utc)

        try:
            async with self._get_client() as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            self._update_metrics_failure("timeout")
            raise NetworkError(
                f"Request timeout after {self.timeout}s",
                self.provider
            ) from e
        except httpx.HTTPError as e:
            self._update_metrics_failure(str(e))
            raise NetworkError(
                f"Network error: {str(e)}",
                self.provider
            ) from e

        # Update rate limit info
        self._update_rate_limit_from_response(response)

        # Handle response
        if response.is_success:
            self._update_metrics_success(start_time)
            return response

        self._update_metrics_failure(f"HTTP {response.status_code}")
        if response.status_code == 401:
            raise AuthenticationError(
                "Authentication failed",
                self.provider,
                response.status_code,
                self._safe_json(response)
            )
        elif response.status_code == 403:
            raise AuthorizationError(
                "Authorization denied",
                self.provider,
                response.status_code,
                self._safe_json(response)
            )
        elif response.status_code == 429:
            retry_after = self._get_retry_after(response)
            raise RateLimitError(
                "Rate limit exceeded",
                self.provider,
                datetime.now(timezone.utc) + timedelta(seconds=retry_after),
                status_code=response.status_code
            )
        elif 400 <= response.status_code < 500:
            raise ValidationError(
                f"Client error: {response.status_code}",
                self.provider,
                response.status_code,
                self._safe_json(response)
            )
        raise IntegrationError(
            f"Server error: {response.status_code}",
            self.provider,
            response.status_code,
            self._safe_json(response)
        )

    async def _request_json(
        self,
        method: str,
        config: Dict[str, Any],
        endpoint: str,
        **kwargs
    ) -> Any:
        response = await self._make_request(method, config, endpoint, **kwargs)
        if not response.content:
            return {}
        return self._safe_json(response)

    def _update_rate_limit_from_response(self, response: httpx.Response) -> None:
        """Update rate limit info from response headers."""
        headers = response.headers

        # Common rate limit headers
        if "x-ratelimit-remaining" in headers:
            try:
                self.rate_limit = RateLimitInfo(
                    limit=int(headers.get("x-ratelimit-limit", "60")),
                    remaining=int(headers["x-ratelimit-remaining"]),
                    reset_at=datetime.fromtimestamp(
                        int(headers.get("x-ratelimit-reset", "0")),
                        tz=timezone.utc
                    )
                )
            except (ValueError, KeyError):
                pass

    def _get_retry_after(self, response: httpx.Response) -> int:
        """Get retry-after seconds from response."""
        retry_after = response.headers.get("retry-after", "60")
        try:
            return int(retry_after)
        except ValueError:
            return 60

    def _safe_json(self, response: httpx.Response) -> Optional[Any]:
        """Safely parse JSON response."""
        try:
            return response.json()
        except ValueError:
            return None

    def _update_metrics_success(self, start_time: datetime) -> None:
        """Update metrics for successful request."""
        duration = (datetime.now(timezone.utc) - start_time).total_seconds()

        self.metrics.total_requests += 1
        self.metrics.successful_requests += 1
        self.metrics.last_success = datetime.now(timezone.utc)

        # Update rolling average
        if self.metrics.average_response_time == 0:
            self.metrics.average_response_time = duration
        else:
            self.metrics.average_response_time = (
                (self.metrics.average_response_time * 0.9) + (duration * 0.1)
            )

    def _update_metrics_failure(self, error: str) -> None:
        """Update metrics for failed request."""
        self.metrics.total_requests += 1
        self.metrics.failed_requests += 1
        self.metrics.last_error = error

    def _require(self, config: Dict[str, Any], key: str, label: str) -> List[str]:
        value = config.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            return [f"{label} is required"]
        return []

    def get_metrics(self) -> IntegrationMetrics:
        """Get current adapter metrics."""
        return self.metrics.model_copy()

    def reset_metrics(self) -> None:
        """Reset adapter metrics."""
        self.metrics = IntegrationMetrics()

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None


def mask_sensitive_data(data: Dict[str, Any], sensitive_keys: List[str]) -> Dict[str, Any]:
    """Mask sensitive data in dictionary for logging."""
    masked = data.copy()

    for key in sensitive_keys:
        if key in masked:
            if isinstance(masked[key], str) and len(masked[key]) > 4:
                masked[key] = masked[key][:4] + "***"
            else:
                masked[key] = "***"

    return masked


def validate_url(url: str) -> bool:
    """Validate URL format."""
    from urllib.parse import urlparse
    result = urlparse(url)
    return all([result.scheme in ("http", "https"), result.netloc])


# Export types and utilities
__all__ = [
    "ProviderAdapter",
    "IntegrationStatus",
    "IntegrationProvider",
    "RateLimitInfo",
    "IntegrationMetrics",
    "IntegrationError",
    "AuthenticationError",
    "AuthorizationError",
    "RateLimitError",
    "ValidationError",
    "NetworkError",
    "UnsupportedOperationError",
    "ProviderNotSupportedError",
    "mask_sensitive_data",
    "validate_url"
]

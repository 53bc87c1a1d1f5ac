"""Base classes and interfaces for relaywatch components."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from relaywatch.models import QueryResult, RelayIdentity


# One logical relay call, e.g. a bound RelayClient.query_validators
RelayOperation = Callable[[RelayIdentity], Awaitable[QueryResult]]


class BaseConnector(ABC):
    """Abstract base class for external data connectors."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to external service."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to external service."""
        pass

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.disconnect()


class ConfigProvider(ABC):
    """Abstract base class for configuration management."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Set configuration value."""
        pass

    @abstractmethod
    def validate(self) -> bool:
        """Validate configuration."""
        pass

"""
ConnectorRegistry — the closed set of supported OAuth providers.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Type

from connectors.base import BaseConnector
from connectors.errors import UnknownProviderError
from connectors.instagram import InstagramConnector
from connectors.linkedin import LinkedInConnector
from connectors.twitter import TwitterConnector

logger = logging.getLogger(__name__)

# ── All known connectors — add new ones here ─────────────────────────────

_ALL_CONNECTORS: List[Type[BaseConnector]] = [
    TwitterConnector,
    LinkedInConnector,
    InstagramConnector,
]


class ConnectorRegistry:
    """Singleton registry for all OAuth connectors."""

    _instance: Optional["ConnectorRegistry"] = None

    def __new__(cls) -> "ConnectorRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._connectors = {}
            cls._instance._discovered = False
        return cls._instance

    def discover(self) -> None:
        """Instantiate every known connector; unconfigured ones are kept but flagged."""
        if self._discovered:
            return
        for conn_cls in _ALL_CONNECTORS:
            conn = conn_cls()
            self._connectors.setdefault(conn.provider_name, conn)
            if conn.is_configured():
                logger.info("Connector registered: %s (%s)", conn.display_name, conn.provider_name)
            else:
                logger.warning(
                    "Connector %s has no client_id/secret — authorization will be refused",
                    conn.provider_name,
                )
        self._discovered = True

    def register(self, connector: BaseConnector) -> None:
        """Install (or replace) the connector for its provider slug."""
        self._connectors[connector.provider_name] = connector

    def get(self, provider: str) -> BaseConnector:
        """Get a connector by provider name."""
        self.discover()
        connector = self._connectors.get(provider)
        if connector is None:
            raise UnknownProviderError(f"Provider '{provider}' is not supported")
        return connector

    def list_providers(self) -> List[Dict[str, object]]:
        """Return info about all available connectors."""
        self.discover()
        return [
            {
                "provider": c.provider_name,
                "display_name": c.display_name,
                "scopes": c.scopes,
                "requires_pkce": c.descriptor.requires_pkce,
                "exchange_shape": c.descriptor.exchange_shape.value,
                "configured": c.is_configured(),
            }
            for c in self._connectors.values()
        ]

    def list_configured(self) -> List[str]:
        self.discover()
        return [name for name, c in self._connectors.items() if c.is_configured()]

    @classmethod
    def reset(cls) -> None:
        """Destroy singleton — only useful in test teardown."""
        cls._instance = None

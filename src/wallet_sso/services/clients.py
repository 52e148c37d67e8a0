# src/wallet_sso/services/clients.py
"""Registry of client applications allowed to use the service."""

from __future__ import annotations

import logging

from wallet_sso.core.settings import ClientConfig
from wallet_sso.services.crypto import CryptoService

logger = logging.getLogger(__name__)


class ClientRegistry:
    """Lookup and credential checks for configured clients."""

    def __init__(self, clients: dict[str, ClientConfig]) -> None:
        self._clients = dict(clients)

    def get(self, client_id: str) -> ClientConfig | None:
        return self._clients.get(client_id)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._clients

    def __len__(self) -> int:
        return len(self._clients)

    def check_credentials(self, client_id: str, client_secret: str | None) -> bool:
        """Return True if `client_secret` satisfies the client's configuration.

        Clients without a configured secret are public and accept any value.
        """
        client = self._clients.get(client_id)
        if client is None:
            return False
        if client.client_secret is None:
            return True
        if client_secret is None:
            return False
        return CryptoService.constant_time_equals(client_secret, client.client_secret)

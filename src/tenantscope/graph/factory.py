"""
Tenant-scoped Graph client construction.
"""

from __future__ import annotations

import logging
from typing import Callable

from tenantscope.graph.client import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT,
    GraphClient,
    GraphClientWrapper,
)
from tenantscope.models import Tenant

logger = logging.getLogger(__name__)


class GraphClientConfigurationError(Exception):
    """Raised when a tenant lacks the credentials needed to build a client."""

    pass


def _plaintext(secret: str) -> str:
    return secret


class GraphClientFactory:
    """
    Builds Graph clients from stored tenant credentials.

    Secret decryption is delegated to the ``decrypt`` callable; the default
    treats the stored value as plaintext.
    """

    def __init__(
        self,
        decrypt: Callable[[str], str] | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self._decrypt = decrypt or _plaintext
        self._base_url = base_url
        self._timeout = timeout

    def create_client(self, tenant: Tenant) -> GraphClient:
        """
        Create a client for a tenant.

        Raises:
            GraphClientConfigurationError: If client id, secret or Azure
                tenant id is missing
        """
        if not tenant.client_id or not tenant.client_secret_encrypted:
            raise GraphClientConfigurationError(
                f"Tenant {tenant.name} is missing client credentials"
            )
        if not tenant.azure_tenant_id:
            raise GraphClientConfigurationError(
                f"Tenant {tenant.name} is missing its Azure tenant id"
            )

        client_secret = self._decrypt(tenant.client_secret_encrypted)
        logger.debug(f"Creating Graph client for tenant {tenant.name}")
        return GraphClientWrapper.from_client_secret(
            azure_tenant_id=tenant.azure_tenant_id,
            client_id=tenant.client_id,
            client_secret=client_secret,
            base_url=self._base_url,
            timeout=self._timeout,
        )

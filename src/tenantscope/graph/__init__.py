"""
Microsoft Graph access for tenantscope.

Provides the GraphClient interface, its HTTP implementation, the
tenant-scoped client factory and the RawDocument reader for
loosely-typed responses.
"""

from tenantscope.graph.client import (
    DEFAULT_BASE_URL,
    DEFAULT_SCOPE,
    GraphApiError,
    GraphClient,
    GraphClientWrapper,
    decode_token_roles,
)
from tenantscope.graph.document import (
    ITEMS_KEY,
    NEXT_LINK_KEY,
    RawDocument,
    parse_datetime,
)
from tenantscope.graph.factory import (
    GraphClientConfigurationError,
    GraphClientFactory,
)

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_SCOPE",
    "GraphApiError",
    "GraphClient",
    "GraphClientWrapper",
    "decode_token_roles",
    "ITEMS_KEY",
    "NEXT_LINK_KEY",
    "RawDocument",
    "parse_datetime",
    "GraphClientConfigurationError",
    "GraphClientFactory",
]

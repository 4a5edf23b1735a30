"""
Microsoft Graph API client for tenantscope.

GraphClient is the interface modules collect through. GraphClientWrapper
implements it with azure-identity for client-credential tokens and direct
HTTP requests for the Graph REST API.
"""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Any, Callable, TypeVar

from azure.identity import ClientSecretCredential

from tenantscope.graph.document import ITEMS_KEY

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_URL = "https://graph.microsoft.com/v1.0/"
DEFAULT_SCOPE = "https://graph.microsoft.com/.default"
DEFAULT_TIMEOUT = 60

# Characters left unescaped when normalizing a request URL
_URL_SAFE = ":/?&=$,'()@*+;%!~"


class GraphApiError(Exception):
    """Exception raised when a Graph request fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        endpoint: str | None = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.endpoint = endpoint
        super().__init__(message)

    @property
    def is_permission_error(self) -> bool:
        """Check whether the failure was an authorization refusal."""
        return self.status_code in (401, 403)


class GraphClient(ABC):
    """
    Abstract interface to the tenant's directory and security API.

    Implementations only need to provide raw document access, the
    connectivity check and the granted-permission list; typed and
    collection reads are built on top of ``get_raw_json``.
    """

    @abstractmethod
    def get_raw_json(self, endpoint: str) -> str | None:
        """
        Fetch a response body.

        Args:
            endpoint: Relative endpoint or absolute URL (e.g. a next link)

        Returns:
            Response body, or None when the resource does not exist

        Raises:
            GraphApiError: If the request fails
        """
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Check that the tenant credentials can reach the API."""
        pass

    @abstractmethod
    def get_granted_permissions(self) -> list[str]:
        """Get the application permissions granted to the client."""
        pass

    def has_permission(self, permission: str) -> bool:
        """Check whether a permission is granted (case-insensitive)."""
        wanted = permission.lower()
        return any(p.lower() == wanted for p in self.get_granted_permissions())

    def get(
        self, endpoint: str, model: Callable[[dict[str, Any]], T] | None = None
    ) -> T | dict[str, Any] | None:
        """
        Fetch and decode a single object.

        Args:
            endpoint: Relative endpoint or absolute URL
            model: Optional factory converting the decoded dict

        Returns:
            Decoded object, or None if the response was empty
        """
        body = self.get_raw_json(endpoint)
        if not body:
            return None
        data = json.loads(body)
        return model(data) if model else data

    def get_collection(
        self, endpoint: str, model: Callable[[dict[str, Any]], T] | None = None
    ) -> list[Any]:
        """
        Fetch the ``value`` array of a collection response (first page only).

        Args:
            endpoint: Relative endpoint or absolute URL
            model: Optional factory converting each item

        Returns:
            List of items, empty if the response was empty
        """
        body = self.get_raw_json(endpoint)
        if not body:
            return []
        data = json.loads(body)
        items = data.get(ITEMS_KEY, []) if isinstance(data, dict) else []
        return [model(item) if model else item for item in items if isinstance(item, dict)]


def decode_token_roles(token: str) -> list[str]:
    """
    Read the ``roles`` claim from a JWT access token.

    The token signature is not verified; the claim is only used to report
    which application permissions were granted.

    Raises:
        ValueError: If the token is not a decodable JWT
    """
    parts = token.split(".")
    if len(parts) < 2:
        raise ValueError("Access token is not a JWT")
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    roles = claims.get("roles", [])
    if isinstance(roles, str):
        return [roles]
    return [r for r in roles if isinstance(r, str)]


class GraphClientWrapper(GraphClient):
    """
    Graph client using client-credential authentication.

    Each request acquires a bearer token from the azure-identity
    credential (which caches tokens) and issues a blocking HTTP GET.
    """

    def __init__(
        self,
        credential: Any,
        base_url: str = DEFAULT_BASE_URL,
        scope: str = DEFAULT_SCOPE,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the client.

        Args:
            credential: azure-identity credential exposing get_token()
            base_url: Prefix for relative endpoints
            scope: Token scope requested from the credential
            timeout: Request timeout in seconds
        """
        self._credential = credential
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._scope = scope
        self._timeout = timeout
        self._granted_permissions: list[str] | None = None

    @classmethod
    def from_client_secret(
        cls,
        azure_tenant_id: str,
        client_id: str,
        client_secret: str,
        **kwargs: Any,
    ) -> GraphClientWrapper:
        """Create a client for an app registration's client secret."""
        credential = ClientSecretCredential(
            tenant_id=azure_tenant_id,
            client_id=client_id,
            client_secret=client_secret,
        )
        return cls(credential, **kwargs)

    @property
    def base_url(self) -> str:
        """Prefix applied to relative endpoints."""
        return self._base_url

    def build_url(self, endpoint: str) -> str:
        """Resolve an endpoint against the base URL."""
        if endpoint.startswith("http://") or endpoint.startswith("https://"):
            url = endpoint
        else:
            url = self._base_url + endpoint.lstrip("/")
        return urllib.parse.quote(url, safe=_URL_SAFE)

    def _get_access_token(self) -> str:
        """Acquire a bearer token for the Graph scope."""
        return self._credential.get_token(self._scope).token

    def get_raw_json(self, endpoint: str) -> str | None:
        """Fetch a response body, returning None on 404."""
        url = self.build_url(endpoint)
        request = urllib.request.Request(
            url,
            headers={
                "Authorization": f"Bearer {self._get_access_token()}",
                "Accept": "application/json",
            },
            method="GET",
        )

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                return response.read().decode("utf-8")

        except urllib.error.HTTPError as e:
            if e.code == 404:
                logger.debug(f"Graph returned 404 for {endpoint}")
                return None
            raise self._to_api_error(e, endpoint)

        except urllib.error.URLError as e:
            raise GraphApiError(f"Network error: {e.reason}", endpoint=endpoint)

    def _to_api_error(
        self, error: urllib.error.HTTPError, endpoint: str
    ) -> GraphApiError:
        """
        Convert an HTTP error response into a GraphApiError.

        The message keeps the HTTP reason phrase (e.g. "Forbidden") and the
        Graph error message so callers can classify the failure.
        """
        error_code = None
        try:
            body = error.read().decode("utf-8")
            error_data = json.loads(body).get("error", {})
            message = error_data.get("message") or str(error)
            error_code = error_data.get("code")
        except (json.JSONDecodeError, UnicodeDecodeError, AttributeError):
            message = str(error)

        logger.warning(f"Graph API returned {error.code} for {endpoint}: {message}")
        return GraphApiError(
            f"{error.code} {error.reason}: {message}",
            status_code=error.code,
            error_code=error_code,
            endpoint=endpoint,
        )

    def test_connection(self) -> bool:
        """
        Check that the credentials are valid.

        A 403 on the organization endpoint still proves the credentials
        authenticate, so it counts as connected.
        """
        self._get_access_token()
        try:
            body = self.get_raw_json("organization")
        except GraphApiError as e:
            if e.status_code == 403:
                logger.info(
                    "Organization.Read.All permission not granted (403), "
                    "but credentials are valid"
                )
                return True
            raise
        if not body:
            return False
        return bool(json.loads(body).get(ITEMS_KEY))

    def get_granted_permissions(self) -> list[str]:
        """Get application permissions from the token's roles claim (cached)."""
        if self._granted_permissions is not None:
            return self._granted_permissions

        try:
            permissions = decode_token_roles(self._get_access_token())
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read granted permissions from token: {e}")
            return []

        self._granted_permissions = permissions
        return permissions

"""
Loosely-typed Graph response documents.

Graph response shapes vary per endpoint, so modules read them through
RawDocument's safe accessors instead of per-endpoint types. Every accessor
returns a default when the field is missing or has an unexpected type.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Iterator

ITEMS_KEY = "value"
NEXT_LINK_KEY = "@odata.nextLink"
ODATA_TYPE_KEY = "@odata.type"

# Graph emits up to seven fractional digits; datetime accepts six
_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")


def parse_datetime(value: Any) -> datetime | None:
    """
    Parse an ISO-8601 timestamp as returned by Graph.

    Args:
        value: Timestamp string such as ``2024-03-01T10:00:00.1234567Z``

    Returns:
        Timezone-aware datetime, or None if value is not a valid timestamp
    """
    if not isinstance(value, str) or not value:
        return None
    text = _FRACTION_PATTERN.sub(r"\1", value.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RawDocument:
    """
    Read-only view over one JSON object from a Graph response.

    Example:
        >>> doc = RawDocument.parse('{"value": [{"id": "1"}]}')
        >>> [item.get_string("id") for item in doc.items()]
        ['1']
    """

    def __init__(self, data: dict[str, Any] | None = None):
        self._data = data if isinstance(data, dict) else {}

    @classmethod
    def parse(cls, text: str | None) -> RawDocument | None:
        """
        Parse a raw JSON response body.

        Args:
            text: Response body

        Returns:
            RawDocument, or None if the body is empty

        Raises:
            ValueError: If the body is not a JSON object
        """
        if not text:
            return None
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("Expected a JSON object in Graph response")
        return cls(data)

    @property
    def data(self) -> dict[str, Any]:
        """Underlying dictionary."""
        return self._data

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __bool__(self) -> bool:
        return bool(self._data)

    def __repr__(self) -> str:
        return f"RawDocument({self._data!r})"

    def get(self, key: str, default: Any = None) -> Any:
        """Get a field value without type checking."""
        return self._data.get(key, default)

    def get_string(self, key: str, default: str | None = None) -> str | None:
        """Get a string field."""
        value = self._data.get(key)
        return value if isinstance(value, str) else default

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get a boolean field."""
        value = self._data.get(key)
        return value if isinstance(value, bool) else default

    def get_int(self, key: str, default: int = 0) -> int:
        """Get an integer field; floats are truncated."""
        value = self._data.get(key)
        if isinstance(value, bool):
            return default
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value)
        return default

    def get_datetime(self, key: str) -> datetime | None:
        """Get a timestamp field."""
        return parse_datetime(self._data.get(key))

    def get_list(self, key: str) -> list[Any]:
        """Get an array field, or an empty list."""
        value = self._data.get(key)
        return list(value) if isinstance(value, list) else []

    def get_strings(self, key: str) -> list[str]:
        """Get the string elements of an array field."""
        return [v for v in self.get_list(key) if isinstance(v, str)]

    def get_document(self, key: str) -> RawDocument | None:
        """Get a nested object field."""
        value = self._data.get(key)
        return RawDocument(value) if isinstance(value, dict) else None

    def get_documents(self, key: str) -> list[RawDocument]:
        """Get the object elements of an array field."""
        return [RawDocument(v) for v in self.get_list(key) if isinstance(v, dict)]

    def items(self) -> Iterator[RawDocument]:
        """Iterate the objects of the collection ``value`` array."""
        return iter(self.get_documents(ITEMS_KEY))

    @property
    def odata_type(self) -> str | None:
        """The ``@odata.type`` annotation, if present."""
        return self.get_string(ODATA_TYPE_KEY)

    @property
    def next_link(self) -> str | None:
        """The ``@odata.nextLink`` cursor, if present."""
        return self.get_string(NEXT_LINK_KEY) or None

    def to_json(self) -> str:
        """Serialize back to JSON."""
        return json.dumps(self._data, default=str)

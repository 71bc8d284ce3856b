"""
JSON encoding for the API.

Request bodies are parsed with ``parse_float=Decimal`` so that ``12.50``
reaches the domain as ``Decimal("12.50")`` and never as a binary float.
Responses render ``Decimal`` and ``UUID`` as strings, dates as ISO-8601 and
enums by value.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from flask.json.provider import DefaultJSONProvider


class ErpJSONProvider(DefaultJSONProvider):
    sort_keys = False

    @staticmethod
    def default(o: Any) -> Any:
        if isinstance(o, Decimal):
            return str(o)
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        return DefaultJSONProvider.default(o)

    def loads(self, s: str | bytes, **kwargs: Any) -> Any:
        kwargs.setdefault("parse_float", Decimal)
        return super().loads(s, **kwargs)

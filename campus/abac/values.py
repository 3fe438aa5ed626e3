"""
Tagged attribute values.

Attribute bags and resource documents are loosely typed: the same name may
hold a string for one user and a list for another. Every raw value is
wrapped in an ``AttributeValue`` before it is compared, so each comparison
dispatches on an explicit ``ValueKind`` and a kind mismatch is an ordinary
``False`` rather than a ``TypeError``.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Optional

from bson import ObjectId


class ValueKind(str, Enum):
    NULL = "null"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    LIST = "list"
    OTHER = "other"


ORDERED_KINDS = {ValueKind.STRING, ValueKind.NUMBER, ValueKind.DATE}


@dataclass(frozen=True)
class AttributeValue:
    kind: ValueKind
    raw: Any

    @classmethod
    def of(cls, raw: Any) -> "AttributeValue":
        if isinstance(raw, AttributeValue):
            return raw
        if raw is None:
            return cls(ValueKind.NULL, None)
        # bool is a subclass of int, check it first
        if isinstance(raw, bool):
            return cls(ValueKind.BOOLEAN, raw)
        if isinstance(raw, (int, float)):
            if isinstance(raw, float) and math.isnan(raw):
                return cls(ValueKind.OTHER, raw)
            return cls(ValueKind.NUMBER, raw)
        if isinstance(raw, str):
            return cls(ValueKind.STRING, raw)
        if isinstance(raw, ObjectId):
            return cls(ValueKind.STRING, str(raw))
        if isinstance(raw, datetime):
            if raw.tzinfo is None:
                raw = raw.replace(tzinfo=timezone.utc)
            return cls(ValueKind.DATE, raw)
        if isinstance(raw, date):
            return cls(ValueKind.DATE, datetime.combine(raw, time(), tzinfo=timezone.utc))
        if isinstance(raw, (list, tuple)):
            return cls(ValueKind.LIST, list(raw))
        return cls(ValueKind.OTHER, raw)

    @property
    def items(self) -> list["AttributeValue"]:
        if self.kind is not ValueKind.LIST:
            return []
        return [AttributeValue.of(item) for item in self.raw]

    def equals(self, other: "AttributeValue") -> bool:
        """Strict equality: kinds must match before values are compared."""
        if self.kind is not other.kind:
            return False
        if self.kind is ValueKind.LIST:
            mine, theirs = self.items, other.items
            return len(mine) == len(theirs) and all(
                a.equals(b) for a, b in zip(mine, theirs)
            )
        return self.raw == other.raw

    def compare(self, other: "AttributeValue") -> Optional[int]:
        """-1, 0 or 1 for same-kind ordered values, None when not comparable."""
        if self.kind is not other.kind or self.kind not in ORDERED_KINDS:
            return None
        if self.raw < other.raw:
            return -1
        if self.raw > other.raw:
            return 1
        return 0

    def has_member(self, needle: "AttributeValue") -> bool:
        return any(item.equals(needle) for item in self.items)

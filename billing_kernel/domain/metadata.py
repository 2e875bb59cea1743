"""
Metadata -- validated free-form attribute bags.

Responsibility:
    Invoices, clients and payments carry an open-ended metadata map from
    the outer application (sync ids, payment links, template names). Each
    call site declares a ``MetadataSchema`` listing the keys it recognizes
    and their types. Parsing validates recognized keys and keeps every
    unknown key verbatim in ``extras``; the kernel never interprets extras.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Failure modes:
    - InvalidMetadataError when a recognized key has the wrong type.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from billing_kernel.exceptions import InvalidMetadataError


@dataclass(frozen=True)
class MetadataSchema:
    """Recognized metadata keys for one call site, with accepted types."""

    call_site: str
    fields: Mapping[str, tuple[type, ...]]

    def parse(self, raw: Mapping[str, Any] | None) -> Metadata:
        """Validate ``raw`` against this schema.

        Raises:
            InvalidMetadataError: if a recognized key has the wrong type.
        """
        recognized: dict[str, Any] = {}
        extras: dict[str, Any] = {}
        for key, value in (raw or {}).items():
            expected = self.fields.get(key)
            if expected is None:
                extras[key] = value
                continue
            if value is None:
                continue
            # bool is an int subclass; only accept it where bool is declared
            if isinstance(value, bool) and bool not in expected:
                raise InvalidMetadataError(
                    self.call_site, key, _type_names(expected), type(value).__name__
                )
            if not isinstance(value, expected):
                raise InvalidMetadataError(
                    self.call_site, key, _type_names(expected), type(value).__name__
                )
            recognized[key] = value
        return Metadata(
            call_site=self.call_site,
            recognized=MappingProxyType(recognized),
            extras=MappingProxyType(extras),
        )

    def empty(self) -> Metadata:
        return self.parse(None)


def _type_names(types: tuple[type, ...]) -> str:
    return " | ".join(t.__name__ for t in types)


@dataclass(frozen=True)
class Metadata:
    """Parsed metadata: validated recognized keys plus untouched extras."""

    call_site: str
    recognized: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    extras: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def get(self, key: str, default: Any = None) -> Any:
        """Value of a recognized key."""
        return self.recognized.get(key, default)

    def as_dict(self) -> dict[str, Any]:
        """Round-trip form: recognized keys and extras merged."""
        merged = dict(self.extras)
        merged.update(self.recognized)
        return merged

    def merged_with(self, schema: MetadataSchema, updates: Mapping[str, Any]) -> Metadata:
        """New Metadata with ``updates`` applied on top of this one."""
        combined = self.as_dict()
        combined.update(updates)
        return schema.parse(combined)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Metadata):
            return NotImplemented
        return (
            self.call_site == other.call_site
            and dict(self.recognized) == dict(other.recognized)
            and dict(self.extras) == dict(other.extras)
        )

    def __hash__(self) -> int:
        return hash((self.call_site, tuple(sorted(self.recognized))))

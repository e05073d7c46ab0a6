"""
Closed vocabulary of permission keys, loaded from YAML.

Expected shape:

    permissions:
      event.create:
        description: Create events
      roster.publish:
        description: Publish rosters

Keys are dotted, lowercase identifiers. The index is loaded once at startup and
seeded into the `permissions` table by `init_db()`; the calculator ignores any
stored grant whose key is not part of the index.
"""

from __future__ import annotations

import logging
from pathlib import Path
import re
from typing import Any, Iterable, Iterator, Mapping

from pydantic import BaseModel, Field, ValidationError
import yaml

logger = logging.getLogger(__name__)


_KEY_RE = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)+$")


class PermissionIndexError(ValueError):
    """Raised when the permission vocabulary file is invalid."""


class PermissionEntry(BaseModel):
    description: str | None = None


class PermissionIndexModel(BaseModel):
    permissions: dict[str, PermissionEntry] = Field(default_factory=dict)


class PermissionIndex:
    """Immutable mapping of permission key → description."""

    def __init__(self, entries: Mapping[str, str | None]) -> None:
        for key in entries:
            if not _KEY_RE.match(key):
                raise PermissionIndexError(f"invalid permission key {key!r}")
        self._entries = dict(sorted(entries.items()))

    @classmethod
    def from_keys(cls, keys: Iterable[str]) -> PermissionIndex:
        return cls({key: None for key in keys})

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def keys(self) -> frozenset[str]:
        return frozenset(self._entries)

    def description(self, key: str) -> str | None:
        return self._entries.get(key)

    def items(self) -> list[tuple[str, str | None]]:
        return list(self._entries.items())


def load_permission_index(path: Path) -> PermissionIndex:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if not isinstance(raw, dict):
        raise PermissionIndexError(f"permission file must contain a mapping: {path}")

    try:
        model = PermissionIndexModel.model_validate(raw)
    except ValidationError as exc:
        raise PermissionIndexError(f"invalid permission file {path}: {exc}") from exc

    if not model.permissions:
        raise PermissionIndexError(f"permission file defines no permissions: {path}")

    index = PermissionIndex({key: entry.description for key, entry in model.permissions.items()})
    logger.debug("Loaded %d permission keys from %s", len(index), path)
    return index

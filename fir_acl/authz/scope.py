"""Answer key/region questions against an effective permission set."""

from __future__ import annotations

from .types import ResolvedPermissions, Universal


def applies_globally(permissions: ResolvedPermissions, key: str) -> bool:
    if isinstance(permissions, Universal):
        return True
    return key in permissions.global_keys


def applies_to_region(permissions: ResolvedPermissions, region_code: str, key: str) -> bool:
    """Global keys count in every region."""

    if isinstance(permissions, Universal):
        return True
    if key in permissions.global_keys:
        return True
    return key in permissions.per_region.get(region_code, frozenset())

from __future__ import annotations

import logging

from .permission_index import PermissionIndex
from .types import (
    UNIVERSAL,
    EffectivePermissionSet,
    GlobalRole,
    Grant,
    GroupRecord,
    Principal,
    ResolvedPermissions,
    Scope,
)

logger = logging.getLogger(__name__)


class EffectivePermissionCalculator:
    """
    Combine a Principal's memberships and grants into its effective permissions.

    Algorithm:
    1. MAIN_ADMIN -> UNIVERSAL.
    2. For every grant of every group the user belongs to:
       - region-independent leadership group, or scope ALL -> global bucket
       - scope OWN_FIR -> bucket of the group's region
    3. Union only; there is no deny.

    An OWN_FIR grant on a group without a region is a data inconsistency and
    lands in the global bucket.
    """

    def __init__(self, index: PermissionIndex) -> None:
        self._index = index

    def compute(self, principal: Principal) -> ResolvedPermissions:
        if principal.global_role is GlobalRole.MAIN_ADMIN:
            return UNIVERSAL

        global_keys: set[str] = set()
        per_region: dict[str, set[str]] = {}

        for membership in principal.memberships:
            group = membership.group
            for grant in membership.grants:
                if grant.key not in self._index:
                    logger.warning(
                        "Ignoring grant with unknown permission key=%s group_id=%s", grant.key, group.id
                    )
                    continue

                region_code = _target_region(group, grant)
                if region_code is None:
                    global_keys.add(grant.key)
                else:
                    per_region.setdefault(region_code, set()).add(grant.key)

        return EffectivePermissionSet(
            global_keys=frozenset(global_keys),
            per_region={code: frozenset(keys) for code, keys in per_region.items()},
        )


def _target_region(group: GroupRecord, grant: Grant) -> str | None:
    """Region code the grant lands in, or None for the global bucket."""

    if group.is_region_independent_leadership:
        return None

    if grant.scope is Scope.ALL:
        return None
    if grant.scope is Scope.OWN_FIR:
        if group.region is None:
            logger.warning(
                "OWN_FIR grant on group without region, treating as global group_id=%s key=%s",
                group.id,
                grant.key,
            )
            return None
        return group.region.code.upper()

    raise ValueError(f"unhandled scope {grant.scope!r}")

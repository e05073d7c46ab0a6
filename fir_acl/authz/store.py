"""
Persistence contract consumed by the engine.

Implementations return the frozen records from `fir_acl.authz.types` and raise
`Unavailable` when the backing store cannot be reached. Reads for one
resolution go through a single `snapshot()` so memberships and grants come
from the same transaction.
"""

from __future__ import annotations

from typing import ContextManager, Protocol, Sequence

from .types import (
    Grant,
    GrantAssignment,
    GlobalRole,
    GroupKind,
    GroupRecord,
    PermissionRecord,
    RegionRecord,
    UserRecord,
)


class StoreReader(Protocol):
    def find_user_by_id(self, cid: int) -> UserRecord | None: ...

    def find_memberships_for_user(self, cid: int) -> Sequence[GroupRecord]: ...

    def find_grants_for_group(self, group_id: int) -> Sequence[Grant]: ...

    def find_groups_by_kind(self, kind: GroupKind) -> Sequence[GroupRecord]: ...

    def find_region(self, code: str) -> RegionRecord | None: ...

    def find_group(self, group_id: int) -> GroupRecord | None: ...

    def list_permissions(self) -> Sequence[PermissionRecord]: ...


class AuthzStore(Protocol):
    def snapshot(self) -> ContextManager[StoreReader]: ...

    def replace_group_grants(self, group_id: int, assignments: Sequence[GrantAssignment]) -> None:
        """Replace the whole grant set of a group in one transaction."""
        ...

    def add_membership(self, cid: int, group_id: int) -> None: ...

    def remove_membership(self, cid: int, group_id: int) -> bool: ...

    def set_user_role(self, cid: int, role: GlobalRole) -> None: ...

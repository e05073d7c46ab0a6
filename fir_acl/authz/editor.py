"""
Permission-editing surface: the group permission matrix, memberships and roles.

Every mutation:
- re-resolves the acting user without the cache (a stale cached allow never
  authorizes an escalation),
- checks the guards in `policies`,
- writes through the store in one transaction,
- flushes the authorization cache as its last step.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging

from . import policies
from .errors import Forbidden, InvalidRequest, NotFound
from .permission_index import PermissionIndex
from .service import AuthorizationService
from .store import AuthzStore
from .types import (
    GlobalRole,
    GrantAssignment,
    GroupKind,
    GroupPermissionView,
    GroupRecord,
    PermissionRecord,
    ResolvedAccess,
    Scope,
)

logger = logging.getLogger(__name__)


class PermissionEditor:
    def __init__(self, store: AuthzStore, index: PermissionIndex, authz: AuthorizationService) -> None:
        self._store = store
        self._index = index
        self._authz = authz

    # ---- Reads ----------------------------------------------------------------------

    def list_permissions(self) -> list[PermissionRecord]:
        with self._store.snapshot() as reader:
            rows = reader.list_permissions()
        return sorted((p for p in rows if p.key in self._index), key=lambda p: p.key)

    def list_groups(self, region_code: str) -> list[GroupRecord]:
        """Groups bound to the region, followed by the region-independent leadership groups."""

        with self._store.snapshot() as reader:
            region = reader.find_region(region_code)
            if region is None:
                raise NotFound(f"FIR {region_code!r} not found")
            groups: list[GroupRecord] = []
            for kind in (GroupKind.REGION_LEADERSHIP, GroupKind.REGION_TEAM, GroupKind.CUSTOM):
                groups.extend(g for g in reader.find_groups_by_kind(kind) if g.region and g.region.id == region.id)
            groups.extend(reader.find_groups_by_kind(GroupKind.LEADERSHIP))
        return groups

    def get_group(self, region_code: str, group_id: int) -> GroupRecord:
        with self._store.snapshot() as reader:
            return self._group_in_region(reader, region_code, group_id)

    def get_group_permissions(self, region_code: str, group_id: int) -> list[GroupPermissionView]:
        with self._store.snapshot() as reader:
            self._group_in_region(reader, region_code, group_id)
            assigned = {g.permission_id: g.scope for g in reader.find_grants_for_group(group_id)}
            permissions = reader.list_permissions()

        return [
            GroupPermissionView(
                permission_id=p.id,
                key=p.key,
                description=p.description,
                assigned_scope=assigned.get(p.id),
            )
            for p in sorted(permissions, key=lambda p: p.key)
            if p.key in self._index
        ]

    # ---- Mutations ------------------------------------------------------------------

    def replace_group_permissions(
        self,
        actor_id: int,
        group_id: int,
        assignments: Iterable[GrantAssignment],
    ) -> None:
        """Replace the group's whole grant set. The only way grants change."""

        normalized = _normalize(assignments)
        actor = self._actor(actor_id)

        with self._store.snapshot() as reader:
            group = reader.find_group(group_id)
            if group is None:
                raise NotFound(f"group {group_id} not found")
            by_id = {p.id: p for p in reader.list_permissions()}

        keys: dict[int, str] = {}
        for assignment in normalized:
            perm = by_id.get(assignment.permission_id)
            if perm is None or perm.key not in self._index:
                raise NotFound(f"permission {assignment.permission_id} not found")
            keys[assignment.permission_id] = perm.key

        if not policies.can_edit_group(actor, group):
            raise Forbidden(f"user {actor_id} may not edit permissions of group {group_id}")
        for assignment in normalized:
            key = keys[assignment.permission_id]
            if assignment.scope is Scope.ALL and not policies.can_assign_all_scope(actor):
                raise Forbidden("ALL scope requires a global operator")
            if not policies.can_grant(actor, group, assignment.scope, key):
                raise Forbidden(f"user {actor_id} may not grant {key} ({assignment.scope.value}) to group {group_id}")

        try:
            self._store.replace_group_grants(group_id, normalized)
        finally:
            self._authz.invalidate_all()
        logger.info(
            "Replaced permissions group_id=%s actor=%s grants=%s",
            group_id,
            actor_id,
            sorted(f"{keys[a.permission_id]}:{a.scope.value}" for a in normalized),
        )

    def add_member(self, actor_id: int, group_id: int, cid: int) -> None:
        group = self._require_membership_right(actor_id, group_id)
        try:
            self._store.add_membership(cid, group.id)
        finally:
            self._authz.invalidate_all()
        logger.info("Added member cid=%s group_id=%s actor=%s", cid, group_id, actor_id)

    def remove_member(self, actor_id: int, group_id: int, cid: int) -> None:
        group = self._require_membership_right(actor_id, group_id)
        try:
            removed = self._store.remove_membership(cid, group.id)
        finally:
            self._authz.invalidate_all()
        if not removed:
            raise NotFound(f"user {cid} is not a member of group {group_id}")
        logger.info("Removed member cid=%s group_id=%s actor=%s", cid, group_id, actor_id)

    def set_global_role(self, actor_id: int, cid: int, role: GlobalRole) -> None:
        actor = self._actor(actor_id)
        if actor.principal.global_role is not GlobalRole.MAIN_ADMIN:
            raise Forbidden("changing global roles requires MAIN_ADMIN")
        try:
            self._store.set_user_role(cid, role)
        finally:
            self._authz.invalidate_all()
        logger.info("Set global role cid=%s role=%s actor=%s", cid, role.value, actor_id)

    # ---- Helpers --------------------------------------------------------------------

    def _actor(self, actor_id: int) -> ResolvedAccess:
        try:
            return self._authz.resolve_fresh(actor_id)
        except NotFound as exc:
            raise Forbidden(f"unknown acting user {actor_id}") from exc

    def _require_membership_right(self, actor_id: int, group_id: int) -> GroupRecord:
        actor = self._actor(actor_id)
        with self._store.snapshot() as reader:
            group = reader.find_group(group_id)
        if group is None:
            raise NotFound(f"group {group_id} not found")
        if not policies.can_manage_membership(actor, group):
            raise Forbidden(f"user {actor_id} may not manage members of group {group_id}")
        return group

    @staticmethod
    def _group_in_region(reader, region_code: str, group_id: int) -> GroupRecord:
        region = reader.find_region(region_code)
        if region is None:
            raise NotFound(f"FIR {region_code!r} not found")
        group = reader.find_group(group_id)
        if group is None or (group.region is not None and group.region.id != region.id):
            raise NotFound(f"group {group_id} not found in FIR {region.code}")
        return group


def _normalize(assignments: Iterable[GrantAssignment]) -> list[GrantAssignment]:
    """Drop exact duplicates; reject one permission assigned with two scopes."""

    seen: dict[int, Scope] = {}
    result: list[GrantAssignment] = []
    for assignment in assignments:
        previous = seen.get(assignment.permission_id)
        if previous is None:
            seen[assignment.permission_id] = assignment.scope
            result.append(assignment)
        elif previous is not assignment.scope:
            raise InvalidRequest(f"permission {assignment.permission_id} assigned with conflicting scopes")
    return result

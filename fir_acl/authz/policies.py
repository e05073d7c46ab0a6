"""
Effective levels and the guards used by the permission editor.

A *global operator* is a MAIN_ADMIN or a member of a region-independent
leadership group. Every cross-region bypass checks this one predicate.
"""

from __future__ import annotations

from .scope import applies_to_region
from .types import EffectiveLevel, GlobalRole, GroupKind, GroupRecord, Principal, ResolvedAccess, Scope

GROUP_MANAGE = "group.manage"


def effective_level(principal: Principal) -> EffectiveLevel:
    if principal.global_role is GlobalRole.MAIN_ADMIN:
        return EffectiveLevel.MAIN_ADMIN
    if principal.is_leadership_member:
        return EffectiveLevel.LEADERSHIP

    home = principal.home_region
    kinds_at_home = {
        m.group.kind for m in principal.memberships if m.region_of_group is not None and m.region_of_group.code == home
    }
    if GroupKind.REGION_LEADERSHIP in kinds_at_home:
        return EffectiveLevel.REGION_LEAD
    if GroupKind.REGION_TEAM in kinds_at_home:
        return EffectiveLevel.REGION_TEAM
    return EffectiveLevel.USER


def region_levels(principal: Principal) -> dict[str, EffectiveLevel]:
    """Per-region level from group kinds; leadership outranks team."""

    levels: dict[str, EffectiveLevel] = {}
    for membership in principal.memberships:
        region = membership.region_of_group
        if region is None:
            continue
        if membership.group.kind is GroupKind.REGION_LEADERSHIP:
            levels[region.code] = EffectiveLevel.REGION_LEAD
        elif membership.group.kind is GroupKind.REGION_TEAM:
            levels.setdefault(region.code, EffectiveLevel.REGION_TEAM)
    return levels


def can_assign_all_scope(actor: ResolvedAccess) -> bool:
    return actor.is_global_operator


def can_edit_group(actor: ResolvedAccess, group: GroupRecord) -> bool:
    if actor.is_global_operator:
        return True
    if group.region is None:
        return False
    return applies_to_region(actor.permissions, group.region.code, GROUP_MANAGE)


def can_grant(actor: ResolvedAccess, group: GroupRecord, scope: Scope, key: str) -> bool:
    if actor.is_global_operator:
        return True
    if not can_edit_group(actor, group):
        return False
    if scope is Scope.ALL:
        return False
    # Region editors never hand group management to a leadership group.
    if group.kind is GroupKind.REGION_LEADERSHIP and key == GROUP_MANAGE:
        return False
    return True


def can_manage_membership(actor: ResolvedAccess, group: GroupRecord) -> bool:
    if actor.is_global_operator:
        return True
    principal = actor.principal
    if effective_level(principal) is not EffectiveLevel.REGION_LEAD:
        return False
    if group.region is None or group.region.code != principal.home_region:
        return False
    return group.kind is GroupKind.REGION_TEAM

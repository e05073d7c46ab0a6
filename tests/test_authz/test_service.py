"""
Tests for the query surface of AuthorizationService.

Data is arranged in an in-memory SQLite database through the `acl` fixture.
"""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from fir_acl.authz import (
    AuthorizationService,
    EffectiveLevel,
    EffectivePermissionCalculator,
    GlobalRole,
    GroupKind,
    NotFound,
    PrincipalResolver,
    Scope,
    Unavailable,
)
from fir_acl.db.store import SqlAlchemyAuthzStore


@pytest.fixture
def regions(acl):
    return {"A": acl.region("A"), "B": acl.region("B")}


def test_scenario_region_confined_grant(acl, authz, regions):
    group = acl.group("A-Leadership", GroupKind.REGION_LEADERSHIP, regions["A"])
    acl.grant(group, "event.create", Scope.OWN_FIR)
    u1 = acl.user(1001)
    acl.member(u1, group)

    assert authz.has_fir_permission(u1, "A", "event.create") is True
    assert authz.has_fir_permission(u1, "B", "event.create") is False
    assert authz.has_permission(u1, "event.create") is False


def test_scenario_main_admin_without_memberships(acl, authz):
    u2 = acl.user(1002, role=GlobalRole.MAIN_ADMIN)

    assert authz.has_fir_permission(u2, "Z", "anything.at.all") is True
    assert authz.has_permission(u2, "roster.publish") is True
    assert authz.has_own_fir_permission(u2, "event.create") is True
    assert authz.is_leadership(u2) is True


def test_scenario_leadership_group(acl, authz, regions):
    leadership = acl.group("Event Leadership", GroupKind.LEADERSHIP)
    acl.grant(leadership, "calendar.block", Scope.OWN_FIR)
    u4 = acl.user(1004)
    acl.member(u4, leadership)

    assert authz.is_leadership(u4) is True
    for code in ("A", "B", "UNRELATED"):
        assert authz.has_fir_permission(u4, code, "calendar.block") is True
    assert authz.has_permission(u4, "calendar.block") is True


def test_all_scope_reaches_unrelated_regions(acl, authz, regions):
    group = acl.group("A-Team", GroupKind.REGION_TEAM, regions["A"])
    acl.grant(group, "event.export", Scope.ALL)
    user = acl.user(1005)
    acl.member(user, group)

    assert authz.has_fir_permission(user, "B", "event.export") is True
    assert authz.has_fir_permission(user, "NOWHERE", "event.export") is True
    assert authz.has_permission(user, "event.export") is True


def test_user_without_memberships_is_denied_everything(acl, authz, regions):
    user = acl.user(1006, role=GlobalRole.ADMIN, region_id=regions["A"])

    assert authz.has_permission(user, "event.create") is False
    assert authz.has_fir_permission(user, "A", "event.create") is False
    assert authz.has_own_fir_permission(user, "event.create") is False
    assert authz.is_leadership(user) is False
    assert authz.effective_level(user) is EffectiveLevel.USER


def test_own_fir_permission_uses_home_region(acl, authz, regions):
    group_a = acl.group("A-Team", GroupKind.REGION_TEAM, regions["A"])
    acl.grant(group_a, "event.edit", Scope.OWN_FIR)
    home_a = acl.user(1007, region_id=regions["A"])
    home_b = acl.user(1008, region_id=regions["B"])
    homeless = acl.user(1009)
    for cid in (home_a, home_b, homeless):
        acl.member(cid, group_a)

    assert authz.has_own_fir_permission(home_a, "event.edit") is True
    assert authz.has_own_fir_permission(home_b, "event.edit") is False
    assert authz.has_own_fir_permission(homeless, "event.edit") is False


def test_unknown_user_is_denied(authz):
    assert authz.has_permission(424242, "event.create") is False
    assert authz.has_fir_permission(424242, "A", "event.create") is False
    assert authz.is_leadership(424242) is False


def test_region_code_is_case_insensitive(acl, authz, regions):
    group = acl.group("A-Team", GroupKind.REGION_TEAM, regions["A"])
    acl.grant(group, "event.create", Scope.OWN_FIR)
    user = acl.user(1010)
    acl.member(user, group)

    assert authz.has_fir_permission(user, "a", "event.create") is True


def test_configured_main_admin_cid_is_universal(acl, store, index, clock):
    acl.user(1011)
    service = AuthorizationService(
        PrincipalResolver(store, main_admin_cids=[1011]),
        EffectivePermissionCalculator(index),
        clock=clock,
    )
    assert service.has_fir_permission(1011, "A", "roster.publish") is True
    assert service.effective_level(1011) is EffectiveLevel.MAIN_ADMIN


def test_answers_are_served_from_cache_until_invalidated(acl, authz, regions, clock):
    group = acl.group("A-Team", GroupKind.REGION_TEAM, regions["A"])
    user = acl.user(1012)
    acl.member(user, group)
    assert authz.has_fir_permission(user, "A", "roster.publish") is False

    # Written behind the engine's back: not visible until expiry or invalidation.
    acl.grant(group, "roster.publish", Scope.OWN_FIR)
    assert authz.has_fir_permission(user, "A", "roster.publish") is False

    authz.invalidate(user)
    assert authz.has_fir_permission(user, "A", "roster.publish") is True


def test_store_failure_denies_and_is_not_cached(acl, index, clock, regions):
    leadership = acl.group("Event Leadership", GroupKind.LEADERSHIP)
    acl.grant(leadership, "event.create", Scope.ALL)
    user = acl.user(1013)
    acl.member(user, leadership)

    broken_factory = MagicMock(side_effect=OperationalError("SELECT 1", {}, Exception("db down")))
    service = AuthorizationService(
        PrincipalResolver(SqlAlchemyAuthzStore(broken_factory)),
        EffectivePermissionCalculator(index),
        clock=clock,
    )

    assert service.has_permission(user, "event.create") is False
    assert service.has_fir_permission(user, "A", "event.create") is False
    assert service.has_own_fir_permission(user, "event.create") is False
    assert service.is_leadership(user) is False
    assert len(service.cache) == 0
    with pytest.raises(Unavailable):
        service.resolve_fresh(user)


def test_non_store_errors_surface_as_unavailable(index):
    store = MagicMock()
    store.snapshot.side_effect = ConnectionError("refused")
    resolver = PrincipalResolver(store)
    with pytest.raises(Unavailable):
        resolver.load(1)


def test_resolver_raises_not_found(store):
    with pytest.raises(NotFound):
        PrincipalResolver(store).load(999)


def test_resolver_normalizes_missing_memberships(acl, store):
    acl.user(1014)
    principal = PrincipalResolver(store).load(1014)
    assert principal.memberships == ()
    assert principal.home_region is None


def test_describe_lists_groups_and_levels(acl, authz, regions):
    lead = acl.group("A Leitung", GroupKind.REGION_LEADERSHIP, regions["A"])
    team = acl.group("B Team", GroupKind.REGION_TEAM, regions["B"])
    acl.grant(lead, "group.manage", Scope.OWN_FIR)
    acl.grant(team, "event.export", Scope.ALL)
    user = acl.user(1015, region_id=regions["A"])
    acl.member(user, lead)
    acl.member(user, team)

    summary = authz.describe(user)
    assert summary["level"] == "REGION_LEAD"
    assert summary["fir_levels"] == {"A": "REGION_LEAD", "B": "REGION_TEAM"}
    assert summary["universal"] is False
    assert summary["permissions"] == {"global": ["event.export"], "per_region": {"A": ["group.manage"]}}
    assert [g["name"] for g in summary["groups"]] == ["A Leitung", "B Team"]


def test_lower_case_region_code_answers_consistently(acl, authz):
    edmm = acl.region("edmm")
    team = acl.group("edmm Event Team", GroupKind.REGION_TEAM, edmm)
    acl.grant(team, "event.create", Scope.OWN_FIR)
    user = acl.user(1016, region_id=edmm)
    acl.member(user, team)

    assert authz.has_own_fir_permission(user, "event.create") is True
    assert authz.has_fir_permission(user, "edmm", "event.create") is True
    assert authz.has_fir_permission(user, "EDMM", "event.create") is True
    assert authz.describe(user)["home_fir"] == "EDMM"

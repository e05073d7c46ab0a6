"""Tests for EffectivePermissionCalculator (pure, no database)."""

import pytest

from fir_acl.authz import UNIVERSAL, EffectivePermissionCalculator, EffectivePermissionSet, PermissionIndex
from fir_acl.authz.types import GlobalRole, Grant, GroupKind, GroupRecord, Membership, Principal, RegionRecord, Scope

EDMM = RegionRecord(id=1, code="EDMM", name="München FIR")
EDGG = RegionRecord(id=2, code="EDGG", name="Langen FIR")


@pytest.fixture
def calculator():
    return EffectivePermissionCalculator(
        PermissionIndex.from_keys(["event.create", "event.export", "roster.publish", "calendar.block"])
    )


def _membership(group_id, kind, region, *grants):
    group = GroupRecord(id=group_id, name=f"group-{group_id}", kind=kind, region=region)
    return Membership(
        group=group,
        grants=tuple(Grant(group_id=group_id, permission_id=i, key=k, scope=s) for i, (k, s) in enumerate(grants)),
    )


def _principal(*memberships, role=GlobalRole.USER, home=None):
    return Principal(user_id=42, global_role=role, home_region=home, memberships=tuple(memberships))


def test_main_admin_is_universal_without_memberships(calculator):
    assert calculator.compute(_principal(role=GlobalRole.MAIN_ADMIN)) is UNIVERSAL


def test_admin_role_is_not_universal(calculator):
    result = calculator.compute(_principal(role=GlobalRole.ADMIN))
    assert result == EffectivePermissionSet()
    assert result.is_empty


def test_own_fir_grant_lands_in_group_region(calculator):
    principal = _principal(
        _membership(1, GroupKind.REGION_LEADERSHIP, EDMM, ("event.create", Scope.OWN_FIR)),
    )
    result = calculator.compute(principal)
    assert result.global_keys == frozenset()
    assert result.per_region == {"EDMM": frozenset({"event.create"})}


def test_all_scope_lands_in_global_bucket(calculator):
    principal = _principal(_membership(1, GroupKind.REGION_TEAM, EDMM, ("event.export", Scope.ALL)))
    result = calculator.compute(principal)
    assert result.global_keys == frozenset({"event.export"})
    assert result.per_region == {}


def test_leadership_group_is_global_whatever_the_scope(calculator):
    principal = _principal(_membership(9, GroupKind.LEADERSHIP, None, ("calendar.block", Scope.OWN_FIR)))
    result = calculator.compute(principal)
    assert result.global_keys == frozenset({"calendar.block"})


def test_own_fir_on_group_without_region_falls_back_to_global(calculator, caplog):
    principal = _principal(_membership(3, GroupKind.CUSTOM, None, ("roster.publish", Scope.OWN_FIR)))
    with caplog.at_level("WARNING"):
        result = calculator.compute(principal)
    assert result.global_keys == frozenset({"roster.publish"})
    assert "without region" in caplog.text


def test_grants_from_several_groups_are_unioned(calculator):
    principal = _principal(
        _membership(1, GroupKind.REGION_TEAM, EDMM, ("event.create", Scope.OWN_FIR)),
        _membership(2, GroupKind.REGION_LEADERSHIP, EDMM, ("event.create", Scope.OWN_FIR), ("roster.publish", Scope.OWN_FIR)),
        _membership(3, GroupKind.REGION_TEAM, EDGG, ("roster.publish", Scope.OWN_FIR)),
    )
    result = calculator.compute(principal)
    assert result.per_region == {
        "EDMM": frozenset({"event.create", "roster.publish"}),
        "EDGG": frozenset({"roster.publish"}),
    }


def test_unknown_keys_are_ignored(calculator):
    principal = _principal(_membership(1, GroupKind.REGION_TEAM, EDMM, ("fir.delete", Scope.ALL)))
    assert calculator.compute(principal).is_empty


def test_no_memberships_means_empty_set(calculator):
    assert calculator.compute(_principal()).is_empty


def test_compute_is_idempotent(calculator):
    principal = _principal(
        _membership(1, GroupKind.REGION_TEAM, EDMM, ("event.create", Scope.OWN_FIR)),
        _membership(9, GroupKind.LEADERSHIP, None, ("calendar.block", Scope.ALL)),
    )
    assert calculator.compute(principal) == calculator.compute(principal)


def test_region_buckets_are_keyed_upper_case(calculator):
    lower = RegionRecord(id=3, code="loww", name="Wien FIR")
    result = calculator.compute(
        _principal(_membership(1, GroupKind.REGION_TEAM, lower, ("event.create", Scope.OWN_FIR)))
    )
    assert result.per_region == {"LOWW": frozenset({"event.create"})}

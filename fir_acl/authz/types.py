"""
Value types shared by the authorization engine.

Everything here is immutable. Store implementations return these records,
never ORM objects, so a Principal can be cached and shared across threads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import enum
from typing import Mapping, Union


class GlobalRole(enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    MAIN_ADMIN = "MAIN_ADMIN"


class GroupKind(enum.Enum):
    REGION_LEADERSHIP = "REGION_LEADERSHIP"
    REGION_TEAM = "REGION_TEAM"
    LEADERSHIP = "LEADERSHIP"
    CUSTOM = "CUSTOM"


class Scope(enum.Enum):
    """Reach of a single grant."""

    OWN_FIR = "OWN_FIR"
    ALL = "ALL"


class EffectiveLevel(enum.Enum):
    MAIN_ADMIN = "MAIN_ADMIN"
    LEADERSHIP = "LEADERSHIP"
    REGION_LEAD = "REGION_LEAD"
    REGION_TEAM = "REGION_TEAM"
    USER = "USER"


# ---- Store records -------------------------------------------------------------------


@dataclass(frozen=True)
class RegionRecord:
    id: int
    code: str
    name: str


@dataclass(frozen=True)
class UserRecord:
    cid: int
    name: str
    role: GlobalRole
    home_region: RegionRecord | None = None


@dataclass(frozen=True)
class GroupRecord:
    id: int
    name: str
    kind: GroupKind
    region: RegionRecord | None = None

    @property
    def is_region_independent_leadership(self) -> bool:
        return self.kind is GroupKind.LEADERSHIP


@dataclass(frozen=True)
class PermissionRecord:
    id: int
    key: str
    description: str | None = None


@dataclass(frozen=True)
class Grant:
    """Group → permission edge with its scope."""

    group_id: int
    permission_id: int
    key: str
    scope: Scope


@dataclass(frozen=True)
class GrantAssignment:
    """One entry of a replace-grants request."""

    permission_id: int
    scope: Scope


@dataclass(frozen=True)
class GroupPermissionView:
    """Row of a group's permission matrix: every permission, with its scope if granted."""

    permission_id: int
    key: str
    description: str | None
    assigned_scope: Scope | None


# ---- Principal -----------------------------------------------------------------------


@dataclass(frozen=True)
class Membership:
    group: GroupRecord
    grants: tuple[Grant, ...] = ()

    @property
    def region_of_group(self) -> RegionRecord | None:
        return self.group.region

    @property
    def is_region_independent_leadership(self) -> bool:
        return self.group.is_region_independent_leadership


@dataclass(frozen=True)
class Principal:
    """Snapshot of a user's role, home region and memberships at resolution time."""

    user_id: int
    global_role: GlobalRole
    home_region: str | None = None
    memberships: tuple[Membership, ...] = ()

    @property
    def is_leadership_member(self) -> bool:
        return any(m.is_region_independent_leadership for m in self.memberships)


# ---- Effective permissions -----------------------------------------------------------


class Universal:
    """Marker for "every key, every region, and the global bucket"."""

    _instance: Universal | None = None

    def __new__(cls) -> Universal:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNIVERSAL"


UNIVERSAL = Universal()


@dataclass(frozen=True)
class EffectivePermissionSet:
    global_keys: frozenset[str] = frozenset()
    per_region: Mapping[str, frozenset[str]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.global_keys and not any(self.per_region.values())

    def to_dict(self) -> dict[str, object]:
        return {
            "global": sorted(self.global_keys),
            "per_region": {code: sorted(keys) for code, keys in sorted(self.per_region.items())},
        }


ResolvedPermissions = Union[EffectivePermissionSet, Universal]


@dataclass(frozen=True)
class ResolvedAccess:
    """What the cache stores per user: the principal and its computed permissions."""

    principal: Principal
    permissions: ResolvedPermissions

    @property
    def is_global_operator(self) -> bool:
        return isinstance(self.permissions, Universal) or self.principal.is_leadership_member

"""
Authorization engine for FIR staffing administration.

This package has no dependency on FastAPI or SQLAlchemy; it talks to the
persistent store through the `AuthzStore` protocol. Build an
`AuthorizationService` once at startup and ask it boolean questions:

    service.has_fir_permission(cid, "EDMM", "event.create")
"""

from .cache import AuthorizationCache
from .calculator import EffectivePermissionCalculator
from .editor import PermissionEditor
from .errors import AuthzError, Conflict, Forbidden, InvalidRequest, NotFound, Unavailable
from .permission_index import PermissionIndex, PermissionIndexError, load_permission_index
from .principal import PrincipalResolver
from .service import AuthorizationService
from .types import (
    UNIVERSAL,
    EffectiveLevel,
    EffectivePermissionSet,
    GlobalRole,
    GrantAssignment,
    GroupKind,
    Principal,
    ResolvedAccess,
    Scope,
    Universal,
)

__all__ = [
    "AuthorizationCache",
    "AuthorizationService",
    "AuthzError",
    "Conflict",
    "EffectiveLevel",
    "EffectivePermissionCalculator",
    "EffectivePermissionSet",
    "Forbidden",
    "GlobalRole",
    "GrantAssignment",
    "GroupKind",
    "InvalidRequest",
    "NotFound",
    "PermissionEditor",
    "PermissionIndex",
    "PermissionIndexError",
    "Principal",
    "PrincipalResolver",
    "ResolvedAccess",
    "Scope",
    "UNIVERSAL",
    "Universal",
    "Unavailable",
    "load_permission_index",
]

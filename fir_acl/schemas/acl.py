from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from fir_acl.authz.types import GroupKind, Scope


class PermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    key: str
    description: str | None = None


class GroupOut(BaseModel):
    id: int
    name: str
    kind: GroupKind
    fir: str | None = None


class GroupPermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    permission_id: int
    key: str
    description: str | None = None
    assigned_scope: Scope | None = None


class GrantIn(BaseModel):
    permission_id: int
    scope: Scope


class MemberIn(BaseModel):
    cid: int


class PermissionsUpdated(BaseModel):
    success: bool = True
    message: str

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from fir_acl.authz import AuthorizationService, GrantAssignment, PermissionEditor
from fir_acl.authz.types import GroupPermissionView
from fir_acl.schemas.acl import GrantIn, GroupOut, GroupPermissionOut, MemberIn, PermissionsUpdated
from fir_acl.security.dependencies import get_authz, get_current_cid, get_editor, require_fir_permission

router = APIRouter(prefix="/firs/{code}", tags=["firs"])

GROUP_MANAGE = "group.manage"


@router.get("/groups", response_model=list[GroupOut])
def list_groups(
    code: str,
    cid: int = Depends(get_current_cid),
    authz: AuthorizationService = Depends(get_authz),
    editor: PermissionEditor = Depends(get_editor),
) -> list[GroupOut]:
    require_fir_permission(authz, cid, code, "admin.access")
    return [
        GroupOut(id=g.id, name=g.name, kind=g.kind, fir=g.region.code if g.region else None)
        for g in editor.list_groups(code)
    ]


@router.get("/groups/{group_id}/permissions", response_model=list[GroupPermissionOut])
def get_group_permissions(
    code: str,
    group_id: int,
    cid: int = Depends(get_current_cid),
    authz: AuthorizationService = Depends(get_authz),
    editor: PermissionEditor = Depends(get_editor),
) -> list[GroupPermissionView]:
    require_fir_permission(authz, cid, code, GROUP_MANAGE)
    return editor.get_group_permissions(code, group_id)


@router.patch("/groups/{group_id}/permissions", response_model=PermissionsUpdated)
def replace_group_permissions(
    code: str,
    group_id: int,
    grants: list[GrantIn],
    cid: int = Depends(get_current_cid),
    editor: PermissionEditor = Depends(get_editor),
) -> PermissionsUpdated:
    # The editor re-resolves the caller fresh; no cached answer is consulted here.
    editor.get_group(code, group_id)
    editor.replace_group_permissions(
        cid,
        group_id,
        [GrantAssignment(permission_id=g.permission_id, scope=g.scope) for g in grants],
    )
    return PermissionsUpdated(message=f"Updated {len(grants)} permissions for group {group_id}")


@router.post("/groups/{group_id}/members", status_code=status.HTTP_201_CREATED)
def add_member(
    code: str,
    group_id: int,
    member: MemberIn,
    cid: int = Depends(get_current_cid),
    editor: PermissionEditor = Depends(get_editor),
) -> dict[str, int]:
    editor.get_group(code, group_id)
    editor.add_member(cid, group_id, member.cid)
    return {"group_id": group_id, "cid": member.cid}


@router.delete("/groups/{group_id}/members/{member_cid}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    code: str,
    group_id: int,
    member_cid: int,
    cid: int = Depends(get_current_cid),
    editor: PermissionEditor = Depends(get_editor),
) -> Response:
    editor.get_group(code, group_id)
    editor.remove_member(cid, group_id, member_cid)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

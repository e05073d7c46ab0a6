from __future__ import annotations

from fastapi import APIRouter, Depends

from fir_acl.authz import AuthorizationService, PermissionEditor
from fir_acl.authz.types import PermissionRecord
from fir_acl.schemas.acl import PermissionOut
from fir_acl.security.dependencies import get_authz, get_current_cid, get_editor

router = APIRouter(tags=["permissions"])


@router.get("/permissions", response_model=list[PermissionOut])
def list_permissions(
    cid: int = Depends(get_current_cid),
    editor: PermissionEditor = Depends(get_editor),
) -> list[PermissionRecord]:
    return editor.list_permissions()


@router.get("/me/permissions")
def my_permissions(
    cid: int = Depends(get_current_cid),
    authz: AuthorizationService = Depends(get_authz),
) -> dict[str, object]:
    # Hint for the UI only; every mutation is re-checked server-side.
    return authz.describe(cid)

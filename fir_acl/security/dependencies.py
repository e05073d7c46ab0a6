from __future__ import annotations

from fastapi import HTTPException, Request, status

from fir_acl.authz import AuthorizationService, PermissionEditor
from fir_acl.security.auth import extract_cid


def get_authz(request: Request) -> AuthorizationService:
    authz = getattr(request.app.state, "authz", None)
    if authz is None:
        raise RuntimeError("Authorization service not built. Did app startup run?")
    return authz


def get_editor(request: Request) -> PermissionEditor:
    editor = getattr(request.app.state, "editor", None)
    if editor is None:
        raise RuntimeError("Permission editor not built. Did app startup run?")
    return editor


def get_current_cid(request: Request) -> int:
    cid = extract_cid(request)
    if cid is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return cid


def require_fir_permission(authz: AuthorizationService, cid: int, fir_code: str, key: str) -> None:
    """Raise 403 unless `cid` holds `key` in the FIR (global operators always pass)."""

    if authz.has_fir_permission(cid, fir_code, key) or authz.is_leadership(cid):
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=f"Missing permission {key!r} for FIR {fir_code.upper()}",
    )

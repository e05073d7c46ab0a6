from __future__ import annotations

from collections.abc import Iterable
import logging

from .errors import AuthzError, NotFound, Unavailable
from .store import AuthzStore, StoreReader
from .types import GlobalRole, Membership, Principal

logger = logging.getLogger(__name__)


class PrincipalResolver:
    """
    Load a user's role, home region and memberships (with grants) into a Principal.

    All reads for one user happen inside a single store snapshot. Users listed in
    `main_admin_cids` resolve as MAIN_ADMIN whatever their stored role is.
    """

    def __init__(self, store: AuthzStore, *, main_admin_cids: Iterable[int] = ()) -> None:
        self._store = store
        self._main_admin_cids = frozenset(main_admin_cids)

    def load(self, user_id: int) -> Principal:
        try:
            with self._store.snapshot() as reader:
                return self._load(reader, user_id)
        except AuthzError:
            raise
        except Exception as exc:
            # Untranslated store failures count as unavailable.
            logger.exception("Principal resolution failed user_id=%s", user_id)
            raise Unavailable(f"could not resolve user {user_id}") from exc

    def _load(self, reader: StoreReader, user_id: int) -> Principal:
        user = reader.find_user_by_id(user_id)
        if user is None:
            raise NotFound(f"user {user_id} not found")

        memberships: list[Membership] = []
        for group in reader.find_memberships_for_user(user_id) or ():
            grants = reader.find_grants_for_group(group.id) or ()
            memberships.append(Membership(group=group, grants=tuple(grants)))

        role = user.role
        if user.cid in self._main_admin_cids and role is not GlobalRole.MAIN_ADMIN:
            logger.debug("Configured main admin cid=%s resolved as MAIN_ADMIN", user.cid)
            role = GlobalRole.MAIN_ADMIN

        return Principal(
            user_id=user.cid,
            global_role=role,
            home_region=user.home_region.code.upper() if user.home_region else None,
            memberships=tuple(memberships),
        )

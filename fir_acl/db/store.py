"""
SQLAlchemy implementation of the engine's `AuthzStore` protocol.

Every public method runs in its own transaction. Any `SQLAlchemyError` is
translated to `Unavailable` so callers never see driver exceptions.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from fir_acl.authz.errors import Conflict, NotFound, Unavailable
from fir_acl.authz.types import (
    Grant,
    GrantAssignment,
    GlobalRole,
    GroupKind,
    GroupRecord,
    PermissionRecord,
    RegionRecord,
    UserRecord,
)
from fir_acl.models.acl import Group, GroupPermission, Permission, Region, User, user_groups

logger = logging.getLogger(__name__)


def _region_record(region: Region | None) -> RegionRecord | None:
    if region is None:
        return None
    # Rows written outside the ORM skip the model validator.
    return RegionRecord(id=region.id, code=region.code.upper(), name=region.name)


def _group_record(group: Group) -> GroupRecord:
    return GroupRecord(id=group.id, name=group.name, kind=group.kind, region=_region_record(group.fir))


class SqlAlchemyReader:
    """Read side bound to one open session (one snapshot)."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_user_by_id(self, cid: int) -> UserRecord | None:
        user = self._session.execute(
            select(User).where(User.cid == cid).options(selectinload(User.fir))
        ).scalar_one_or_none()
        if user is None:
            return None
        return UserRecord(cid=user.cid, name=user.name, role=user.role, home_region=_region_record(user.fir))

    def find_memberships_for_user(self, cid: int) -> list[GroupRecord]:
        groups = self._session.scalars(
            select(Group)
            .join(user_groups, user_groups.c.group_id == Group.id)
            .where(user_groups.c.user_cid == cid)
            .options(selectinload(Group.fir))
            .order_by(Group.id)
        ).all()
        return [_group_record(g) for g in groups]

    def find_grants_for_group(self, group_id: int) -> list[Grant]:
        rows = self._session.scalars(
            select(GroupPermission)
            .where(GroupPermission.group_id == group_id)
            .options(selectinload(GroupPermission.permission))
            .order_by(GroupPermission.id)
        ).all()
        return [
            Grant(group_id=row.group_id, permission_id=row.permission_id, key=row.permission.key, scope=row.scope)
            for row in rows
        ]

    def find_groups_by_kind(self, kind: GroupKind) -> list[GroupRecord]:
        groups = self._session.scalars(
            select(Group).where(Group.kind == kind).options(selectinload(Group.fir)).order_by(Group.name)
        ).all()
        return [_group_record(g) for g in groups]

    def find_region(self, code: str) -> RegionRecord | None:
        region = self._session.execute(
            select(Region).where(func.upper(Region.code) == code.strip().upper())
        ).scalar_one_or_none()
        return _region_record(region)

    def find_group(self, group_id: int) -> GroupRecord | None:
        group = self._session.execute(
            select(Group).where(Group.id == group_id).options(selectinload(Group.fir))
        ).scalar_one_or_none()
        if group is None:
            return None
        return _group_record(group)

    def list_permissions(self) -> list[PermissionRecord]:
        rows = self._session.scalars(select(Permission).order_by(Permission.key)).all()
        return [PermissionRecord(id=p.id, key=p.key, description=p.description) for p in rows]


class SqlAlchemyAuthzStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.warning("Persistent store unavailable: %s", exc)
            raise Unavailable("persistent store unavailable") from exc

    @contextmanager
    def snapshot(self) -> Iterator[SqlAlchemyReader]:
        with self._transaction() as session:
            yield SqlAlchemyReader(session)

    # ---- Mutations --------------------------------------------------------------------

    def replace_group_grants(self, group_id: int, assignments: Sequence[GrantAssignment]) -> None:
        with self._transaction() as session:
            if session.get(Group, group_id) is None:
                raise NotFound(f"group {group_id} not found")

            wanted = {a.permission_id for a in assignments}
            if wanted:
                existing = set(session.scalars(select(Permission.id).where(Permission.id.in_(wanted))).all())
                missing = wanted - existing
                if missing:
                    raise NotFound(f"permissions not found: {sorted(missing)}")

            session.execute(delete(GroupPermission).where(GroupPermission.group_id == group_id))
            session.add_all(
                [
                    GroupPermission(group_id=group_id, permission_id=a.permission_id, scope=a.scope)
                    for a in assignments
                ]
            )

    def add_membership(self, cid: int, group_id: int) -> None:
        with self._transaction() as session:
            user = session.execute(
                select(User).where(User.cid == cid).options(selectinload(User.groups))
            ).scalar_one_or_none()
            if user is None:
                raise NotFound(f"user {cid} not found")
            group = session.get(Group, group_id)
            if group is None:
                raise NotFound(f"group {group_id} not found")
            if any(g.id == group_id for g in user.groups):
                raise Conflict(f"user {cid} is already a member of group {group_id}")

            # Joining a region-bound group moves the user to that region.
            if group.fir_id is not None and user.fir_id != group.fir_id:
                user.fir_id = group.fir_id
            user.groups.append(group)

    def remove_membership(self, cid: int, group_id: int) -> bool:
        with self._transaction() as session:
            result = session.execute(
                delete(user_groups).where(user_groups.c.user_cid == cid, user_groups.c.group_id == group_id)
            )
            return result.rowcount > 0

    def set_user_role(self, cid: int, role: GlobalRole) -> None:
        with self._transaction() as session:
            user = session.get(User, cid)
            if user is None:
                raise NotFound(f"user {cid} not found")
            user.role = role

"""
Pytest fixtures for the test suite.

Store and service tests use a fresh in-memory SQLite engine per test (one
shared connection via StaticPool), so tests do not affect each other.
"""
from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fir_acl.authz import (
    AuthorizationService,
    EffectivePermissionCalculator,
    GlobalRole,
    GroupKind,
    PermissionEditor,
    PermissionIndex,
    PrincipalResolver,
    Scope,
)
from fir_acl.db.init_db import sync_permissions
from fir_acl.db.store import SqlAlchemyAuthzStore
from fir_acl.models.acl import Group, GroupPermission, Permission, Region, User


TEST_DB_URL = "sqlite://"

TEST_PERMISSION_KEYS = (
    "admin.access",
    "group.manage",
    "event.create",
    "event.edit",
    "event.export",
    "roster.publish",
    "calendar.block",
)


class FakeClock:
    """Controllable monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class AclBuilder:
    """Small helper to arrange regions, groups, users, memberships and grants."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def region(self, code: str, name: str | None = None) -> int:
        with self._session_factory() as db:
            region = Region(code=code, name=name or f"{code} FIR")
            db.add(region)
            db.commit()
            return region.id

    def group(self, name: str, kind: GroupKind, region_id: int | None = None) -> int:
        with self._session_factory() as db:
            group = Group(name=name, kind=kind, fir_id=region_id)
            db.add(group)
            db.commit()
            return group.id

    def user(self, cid: int, role: GlobalRole = GlobalRole.USER, region_id: int | None = None) -> int:
        with self._session_factory() as db:
            db.add(User(cid=cid, name=f"User {cid}", role=role, fir_id=region_id))
            db.commit()
            return cid

    def member(self, cid: int, group_id: int) -> None:
        with self._session_factory() as db:
            user = db.get(User, cid)
            user.groups.append(db.get(Group, group_id))
            db.commit()

    def grant(self, group_id: int, key: str, scope: Scope) -> None:
        with self._session_factory() as db:
            perm = db.query(Permission).filter(Permission.key == key).one()
            db.add(GroupPermission(group_id=group_id, permission_id=perm.id, scope=scope))
            db.commit()

    def permission_id(self, key: str) -> int:
        with self._session_factory() as db:
            return db.query(Permission).filter(Permission.key == key).one().id


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def index() -> PermissionIndex:
    return PermissionIndex.from_keys(TEST_PERMISSION_KEYS)


@pytest.fixture
def session_factory(engine, index):
    """Create all ORM tables and the permission vocabulary on the test engine."""
    from fir_acl.db.base import Base

    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session)
    with factory() as db:
        sync_permissions(db, index)
        db.commit()
    return factory


@pytest.fixture
def acl(session_factory) -> AclBuilder:
    return AclBuilder(session_factory)


@pytest.fixture
def store(session_factory) -> SqlAlchemyAuthzStore:
    return SqlAlchemyAuthzStore(session_factory)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def authz(store, index, clock) -> AuthorizationService:
    return AuthorizationService(
        PrincipalResolver(store),
        EffectivePermissionCalculator(index),
        cache_ttl_seconds=60.0,
        clock=clock,
    )


@pytest.fixture
def editor(store, index, authz) -> PermissionEditor:
    return PermissionEditor(store, index, authz)

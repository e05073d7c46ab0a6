from __future__ import annotations

from collections.abc import Iterable
import logging

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from fir_acl.authz.permission_index import PermissionIndex
from fir_acl.authz.types import GlobalRole, GroupKind, Scope
from fir_acl.db.base import Base
from fir_acl.models.acl import Group, GroupPermission, Permission, Region, User

logger = logging.getLogger(__name__)


REGION_TEAM_KEYS = ("admin.access", "event.create", "event.edit", "event.delete", "roster.publish")
REGION_LEADERSHIP_KEYS = REGION_TEAM_KEYS + ("group.manage", "fir.manage", "signups.manage", "event.export")


def init_db(
    engine: Engine,
    session_factory: sessionmaker[Session],
    index: PermissionIndex,
    main_admin_cids: Iterable[int] = (),
) -> None:
    """
    Create tables, sync the permission vocabulary and seed demo data.

    The seed runs only on an empty database so existing installations keep
    their groups and grants.
    """

    Base.metadata.create_all(bind=engine)

    with session_factory() as db:
        sync_permissions(db, index)
        if not _has_seed_data(db):
            _seed(db, index)
        _ensure_main_admins(db, main_admin_cids)
        db.commit()


def sync_permissions(db: Session, index: PermissionIndex) -> None:
    """Upsert every vocabulary key; stale rows are kept but ignored at calculation time."""

    existing = {p.key: p for p in db.scalars(select(Permission)).all()}
    for key, description in index.items():
        row = existing.get(key)
        if row is None:
            db.add(Permission(key=key, description=description))
        elif row.description != description:
            row.description = description

    stale = sorted(set(existing) - index.keys)
    if stale:
        logger.warning("Permissions in database but not in vocabulary (ignored): %s", stale)
    db.flush()


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Region.id).limit(1)).first() is not None


def _seed(db: Session, index: PermissionIndex) -> None:
    perms = {p.key: p for p in db.scalars(select(Permission)).all()}

    edmm = Region(code="EDMM", name="München FIR")
    edgg = Region(code="EDGG", name="Langen FIR")
    edww = Region(code="EDWW", name="Bremen FIR")
    db.add_all([edmm, edgg, edww])
    db.flush()

    for region in (edmm, edgg, edww):
        team = Group(
            name=f"{region.code} Event Team",
            description=f"Event team of {region.code}",
            kind=GroupKind.REGION_TEAM,
            fir_id=region.id,
        )
        lead = Group(
            name=f"{region.code} Leitung",
            description=f"Event leadership of {region.code}",
            kind=GroupKind.REGION_LEADERSHIP,
            fir_id=region.id,
        )
        db.add_all([team, lead])
        db.flush()
        _grant(db, team, perms, REGION_TEAM_KEYS, Scope.OWN_FIR)
        _grant(db, lead, perms, REGION_LEADERSHIP_KEYS, Scope.OWN_FIR)

    leadership = Group(
        name="Event Leadership",
        description="Region-independent event leadership",
        kind=GroupKind.LEADERSHIP,
        fir_id=None,
    )
    db.add(leadership)
    db.flush()
    _grant(db, leadership, perms, tuple(index), Scope.ALL)

    logger.info("Seeded demo regions and groups")


def _grant(db: Session, group: Group, perms: dict[str, Permission], keys: Iterable[str], scope: Scope) -> None:
    for key in keys:
        perm = perms.get(key)
        if perm is None:
            continue
        db.add(GroupPermission(group_id=group.id, permission_id=perm.id, scope=scope))


def _ensure_main_admins(db: Session, cids: Iterable[int]) -> None:
    for cid in cids:
        user = db.get(User, cid)
        if user is None:
            db.add(User(cid=cid, name=f"Main admin {cid}", role=GlobalRole.MAIN_ADMIN))
            logger.info("Created main admin user cid=%s", cid)
        elif user.role is not GlobalRole.MAIN_ADMIN:
            user.role = GlobalRole.MAIN_ADMIN
            logger.info("Promoted cid=%s to MAIN_ADMIN", cid)

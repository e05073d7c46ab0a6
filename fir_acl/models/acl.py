from __future__ import annotations

from sqlalchemy import Column, Enum, ForeignKey, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from fir_acl.authz.types import GlobalRole, GroupKind, Scope
from fir_acl.db.base import Base


class Region(Base):
    """An FIR."""

    __tablename__ = "firs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    users: Mapped[list["User"]] = relationship(back_populates="fir")
    groups: Mapped[list["Group"]] = relationship(back_populates="fir")

    @validates("code")
    def _upper_code(self, _key: str, value: str) -> str:
        return value.strip().upper()


user_groups = Table(
    "user_groups",
    Base.metadata,
    Column("user_cid", ForeignKey("users.cid", ondelete="CASCADE"), primary_key=True),
    Column("group_id", ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    cid: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[GlobalRole] = mapped_column(Enum(GlobalRole), default=GlobalRole.USER, nullable=False)

    fir_id: Mapped[int | None] = mapped_column(ForeignKey("firs.id"), nullable=True, index=True)

    fir: Mapped[Region | None] = relationship(back_populates="users")
    groups: Mapped[list["Group"]] = relationship(
        secondary=user_groups,
        back_populates="members",
    )


class Group(Base):
    __tablename__ = "groups"
    __table_args__ = (UniqueConstraint("name", "fir_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    kind: Mapped[GroupKind] = mapped_column(Enum(GroupKind), default=GroupKind.CUSTOM, nullable=False)

    # Null for region-independent groups.
    fir_id: Mapped[int | None] = mapped_column(ForeignKey("firs.id"), nullable=True, index=True)
    fir: Mapped[Region | None] = relationship(back_populates="groups")
    members: Mapped[list[User]] = relationship(
        secondary=user_groups,
        back_populates="groups",
    )
    permissions: Mapped[list["GroupPermission"]] = relationship(
        back_populates="group",
        cascade="all, delete-orphan",
    )


class Permission(Base):
    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    groups: Mapped[list["GroupPermission"]] = relationship(back_populates="permission")


class GroupPermission(Base):
    """A grant: group → permission with a scope."""

    __tablename__ = "group_permissions"
    __table_args__ = (UniqueConstraint("group_id", "permission_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id: Mapped[int] = mapped_column(ForeignKey("permissions.id"), nullable=False, index=True)
    scope: Mapped[Scope] = mapped_column(Enum(Scope), nullable=False)

    group: Mapped[Group] = relationship(back_populates="permissions")
    permission: Mapped[Permission] = relationship(back_populates="groups")

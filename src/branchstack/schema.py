"""
ORM rows for repositories, stacks, branches and commits.

Branch ordering lives in ``BranchRow.position``; ``parent_id`` is derived from
it by :class:`~branchstack.position_manager.StackPositionManager` and is never
written independently.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from .database import Base
from .models import BranchStatus


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RepositoryRow(Base):
    __tablename__ = "repositories"

    # owner/name derived from remote.origin.url
    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    base_branches: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    stacks: Mapped[List["StackRow"]] = relationship(
        "StackRow",
        back_populates="repository",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class StackRow(Base):
    __tablename__ = "stacks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    repository_name: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("repositories.name", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    base_branch: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    repository: Mapped["RepositoryRow"] = relationship("RepositoryRow", back_populates="stacks")
    branches: Mapped[List["BranchRow"]] = relationship(
        "BranchRow",
        back_populates="stack",
        order_by="BranchRow.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class BranchRow(Base):
    __tablename__ = "branches"
    __table_args__ = (UniqueConstraint("stack_id", "position", name="uq_branches_stack_position"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    stack_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stacks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=BranchStatus.ACTIVE.value, nullable=False)
    latest_commit: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    stack: Mapped["StackRow"] = relationship("StackRow", back_populates="branches")
    commits: Mapped[List["CommitRow"]] = relationship(
        "CommitRow",
        back_populates="branch",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class CommitRow(Base):
    """Informational, append-only record of a commit seen on a tracked branch."""

    __tablename__ = "commits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    branch_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sha: Mapped[str] = mapped_column(String(64), nullable=False)
    message: Mapped[str] = mapped_column(Text, default="", nullable=False)
    author: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)

    branch: Mapped["BranchRow"] = relationship("BranchRow", back_populates="commits")


class PendingOperationRow(Base):
    """A restack or fold paused on conflicts, waiting for ``continue``."""

    __tablename__ = "pending_operations"

    repository_name: Mapped[str] = mapped_column(
        String(255), ForeignKey("repositories.name", ondelete="CASCADE"), primary_key=True
    )
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    stack_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stacks.id", ondelete="CASCADE"), nullable=False
    )
    original_branch: Mapped[str] = mapped_column(String(255), nullable=False)
    paused_branch: Mapped[str] = mapped_column(String(255), nullable=False)
    target_branch: Mapped[str] = mapped_column(String(255), nullable=False)
    stop_at: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)

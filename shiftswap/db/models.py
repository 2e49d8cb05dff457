from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""


def as_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime.

    SQLite drops the offset of DateTime(timezone=True) columns; stored values are always UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class User(Base):
    """Group participant.

    Credentials and account provisioning live outside this package; only the
    fields the trade engine reads are stored here.

    Stores:
    - id: User ID (string UUID format)
    - email: Unique email, also the owner name recorded on schedule units
    - group_ids: Groups the user belongs to
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    group_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))


class Group(Base):
    """Group that owns a master schedule.

    member_ids is a superset of admin_ids.
    """

    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    admin_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    member_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))


class MasterSchedule(Base):
    """Committed schedule of a group with its ownership index.

    Architecture: the nested schedule (opaque generator output) and the flat
    unit_index are two views of the same ownership data. They are only ever
    written together, by ledger append or trade execution, inside one
    transaction.

    Versioning: `version` is the mapper's version_id_col. Every UPDATE is
    conditioned on the version loaded by the session, so a concurrent writer
    causes StaleDataError instead of a lost update.
    """

    __tablename__ = "master_schedules"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    group_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    schedule: Mapped[dict] = mapped_column(JSON, nullable=False)
    unit_index: Mapped[dict] = mapped_column(JSON, nullable=False)
    ledger_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_master_schedules_group_created", "group_id", "created_at"),  # Active schedule lookup
    )


class LedgerTrade(Base):
    """One entry of a master schedule's trade ledger.

    Unit id lists are stored as JSON arrays of canonical UUID strings.
    Status is the TradeStatus value ("open", "executed", "void", "cancelled").
    """

    __tablename__ = "trade_ledger"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    schedule_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    ledger_position: Mapped[int] = mapped_column(Integer, nullable=False)
    initiator_email: Mapped[str] = mapped_column(String, nullable=False, index=True)
    executor_email: Mapped[str] = mapped_column(String, nullable=False, index=True)
    initiator_units: Mapped[list] = mapped_column(JSON, nullable=False)
    executor_units: Mapped[list] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="open", index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("schedule_id", "ledger_position", name="uq_trade_ledger_position"),
    )

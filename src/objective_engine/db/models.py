"""ORM models for the objectives engine and the collaborator tables it reads.

The engine owns objective_templates, objective_sets, objective_set_objectives,
objective_progress and user_objective_set_progress. The remaining tables belong
to other parts of the game backend; the engine only reads aggregates from them
or issues the balance/reward-pack writes described by its reward gateway.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from objective_engine.db.base import BigIntPK, Base


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Collaborator tables
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table. Only the coin balance matters here."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    coins: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RewardPack(Base):
    """Unopened reward packs granted by objectives and sets."""

    __tablename__ = "reward_packs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    pack_id: Mapped[str] = mapped_column(String(64), nullable=False)
    source_type: Mapped[str] = mapped_column(String(32), nullable=False)
    source_ref: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_opened: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PackOpen(Base):
    """One row per opened pack (shop or reward)."""

    __tablename__ = "pack_opens"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    pack_type: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class UserMonster(Base):
    """Owned monsters. Consumed monsters (evolved, sold, quick-sold) stay as history."""

    __tablename__ = "user_monsters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    template_code: Mapped[str] = mapped_column(String(64), nullable=False)
    rarity: Mapped[str] = mapped_column(String(16), nullable=False)
    is_consumed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class UserGameweekScore(Base):
    """Fantasy points scored by a user in one gameweek."""

    __tablename__ = "user_gameweek_scores"
    __table_args__ = (
        UniqueConstraint("user_id", "gameweek_id", name="user_gameweek_scores_user_id_gameweek_id_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    gameweek_id: Mapped[int] = mapped_column(Integer, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


class GameweekEntry(Base):
    """A submitted fantasy squad. Several entries per gameweek are possible."""

    __tablename__ = "gameweek_entries"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    gameweek_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class MarketTransaction(Base):
    """Completed marketplace sale."""

    __tablename__ = "market_transactions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    buyer_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    seller_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


# ---------------------------------------------------------------------------
# Objective catalog
# ---------------------------------------------------------------------------


class ObjectiveTemplate(Base):
    """Objective definitions. Read-only for the engine."""

    __tablename__ = "objective_templates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str | None] = mapped_column(String(32), nullable=True)
    period: Mapped[str] = mapped_column(String(16), nullable=False, default="season")
    type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    target_value: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    reward_type: Mapped[str] = mapped_column(String(16), nullable=False)
    reward_value: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    is_repeatable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    season_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ObjectiveSet(Base):
    """A bundle of objectives with its own completion reward."""

    __tablename__ = "objective_sets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    season_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    reward_type: Mapped[str] = mapped_column(String(16), nullable=False)
    reward_value: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    objectives: Mapped[list[ObjectiveSetObjective]] = relationship(
        "ObjectiveSetObjective", back_populates="objective_set", lazy="selectin",
    )


class ObjectiveSetObjective(Base):
    """Link row between a set and one of its member objectives."""

    __tablename__ = "objective_set_objectives"
    __table_args__ = (
        UniqueConstraint(
            "objective_set_id", "objective_id",
            name="objective_set_objectives_objective_set_id_objective_id_key",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    objective_set_id: Mapped[str] = mapped_column(String(36), ForeignKey("objective_sets.id"), nullable=False)
    objective_id: Mapped[str] = mapped_column(String(36), ForeignKey("objective_templates.id"), nullable=False)

    objective_set: Mapped[ObjectiveSet] = relationship("ObjectiveSet", back_populates="objectives")


# ---------------------------------------------------------------------------
# Per-user progress
# ---------------------------------------------------------------------------


class ObjectiveProgress(Base):
    """Progress of one user on one objective, unique per (user_id, objective_id)."""

    __tablename__ = "objective_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "objective_id", name="objective_progress_user_id_objective_id_key"),
        CheckConstraint("current_value >= 0", name="objective_progress_current_value_check"),
        CheckConstraint(
            "reward_claimed_at IS NULL OR completed_at IS NOT NULL",
            name="objective_progress_claim_after_completion",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    objective_id: Mapped[str] = mapped_column(String(36), ForeignKey("objective_templates.id"), nullable=False)
    current_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reward_claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(),
    )


class UserObjectiveSetProgress(Base):
    """Completion of one set for one user, unique per (user_id, objective_set_id)."""

    __tablename__ = "user_objective_set_progress"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "objective_set_id",
            name="user_objective_set_progress_user_id_objective_set_id_key",
        ),
        CheckConstraint(
            "reward_claimed_at IS NULL OR is_completed",
            name="user_objective_set_progress_claim_after_completion",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    objective_set_id: Mapped[str] = mapped_column(String(36), ForeignKey("objective_sets.id"), nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reward_claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

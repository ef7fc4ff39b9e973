"""
SQLAlchemy ORM models for the TT Reviews catalog and moderation workflow.
"""

import enum
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    true,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tt_reviews.database.db import Base

# JSONB on PostgreSQL, plain JSON elsewhere (test databases)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class SubmissionStatus(str, enum.Enum):
    """Lifecycle status shared by reviews, player edits and equipment submissions."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    # Legal for player edits only; nothing in the workflow sets it
    AWAITING_SECOND_APPROVAL = "awaiting_second_approval"


class SubmissionType(str, enum.Enum):
    """Submission family handled by the moderation workflow."""

    REVIEW = "review"
    PLAYER_EDIT = "player_edit"
    EQUIPMENT_SUBMISSION = "equipment_submission"


class EquipmentCategory(str, enum.Enum):
    """Equipment category enum."""

    BLADE = "blade"
    RUBBER = "rubber"
    BALL = "ball"


class EquipmentSubcategory(str, enum.Enum):
    """Rubber subcategory enum."""

    INVERTED = "inverted"
    LONG_PIPS = "long_pips"
    ANTI = "anti"
    SHORT_PIPS = "short_pips"


class PlayingStyle(str, enum.Enum):
    """Player playing style enum."""

    ATTACKER = "attacker"
    ALL_ROUNDER = "all_rounder"
    DEFENDER = "defender"
    COUNTER_ATTACKER = "counter_attacker"
    CHOPPER = "chopper"
    UNKNOWN = "unknown"


class ModerationAction(str, enum.Enum):
    """Action recorded in the moderator_approvals ledger."""

    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalSource(str, enum.Enum):
    """Surface a moderation action came from."""

    ADMIN = "admin"
    DISCORD = "discord"


class User(Base):
    """Site account that submits content."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, unique=True)
    display_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Moderator(Base):
    """Acting moderator identity (site admin account or Discord user)."""

    __tablename__ = "moderators"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True
    )
    discord_user_id = Column(String(32), nullable=True, unique=True)
    display_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", foreign_keys=[user_id], backref="moderator")

    __table_args__ = (
        CheckConstraint(
            "user_id IS NOT NULL OR discord_user_id IS NOT NULL",
            name="ck_moderators_identity",
        ),
    )


class Player(Base):
    """Professional player profile (canonical record)."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    slug = Column(String(200), nullable=False, unique=True)
    highest_rating = Column(String, nullable=True)
    active_years = Column(String, nullable=True)
    active = Column(Boolean, nullable=False, default=True, server_default=true())
    playing_style = Column(String(30), nullable=True)
    birth_country = Column(String(3), nullable=True)  # ISO 3166-1 alpha-3
    represents = Column(String(3), nullable=True)  # ISO 3166-1 alpha-3
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    edits = relationship("PlayerEdit", back_populates="player")

    __table_args__ = (
        Index("idx_players_name", "name"),
    )


class Equipment(Base):
    """Blade, rubber or ball (canonical record)."""

    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    slug = Column(String(200), nullable=False, unique=True)
    manufacturer = Column(String, nullable=False)
    category = Column(String(20), nullable=False)
    subcategory = Column(String(20), nullable=True)
    specifications = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    reviews = relationship("EquipmentReview", back_populates="equipment")

    __table_args__ = (
        CheckConstraint(
            "category IN ('blade', 'rubber', 'ball')", name="ck_equipment_category"
        ),
        Index("idx_equipment_name", "name"),
        Index("idx_equipment_category", "category"),
    )


class EquipmentReview(Base):
    """User review of a piece of equipment (one per user per equipment)."""

    __tablename__ = "equipment_reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    equipment_id = Column(
        Integer, ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(30), nullable=False, server_default="pending")
    overall_rating = Column(Float, nullable=False)
    category_ratings = Column(JSONType, nullable=False, default=dict)  # category -> 1-10
    review_text = Column(Text, nullable=True)
    reviewer_context = Column(JSONType, nullable=False, default=dict)
    moderator_id = Column(
        Integer, ForeignKey("moderators.id", ondelete="SET NULL"), nullable=True
    )
    moderator_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    equipment = relationship("Equipment", back_populates="reviews")
    user = relationship("User", foreign_keys=[user_id], backref="equipment_reviews")

    __table_args__ = (
        UniqueConstraint("user_id", "equipment_id", name="uq_equipment_reviews_user_equipment"),
        CheckConstraint(
            "overall_rating >= 1 AND overall_rating <= 10",
            name="ck_equipment_reviews_rating_range",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_equipment_reviews_status",
        ),
        Index("idx_equipment_reviews_status_created", "status", "created_at"),
        Index("idx_equipment_reviews_equipment", "equipment_id"),
    )


class PlayerEdit(Base):
    """User-proposed partial update to a player profile."""

    __tablename__ = "player_edits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    edit_data = Column(JSONType, nullable=False)  # JSON object of field -> new_value
    status = Column(String(30), nullable=False, server_default="pending")
    moderator_id = Column(
        Integer, ForeignKey("moderators.id", ondelete="SET NULL"), nullable=True
    )
    moderator_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    player = relationship("Player", back_populates="edits")
    user = relationship("User", foreign_keys=[user_id], backref="player_edits")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'awaiting_second_approval')",
            name="ck_player_edits_status",
        ),
        Index("idx_player_edits_status_created", "status", "created_at"),
    )


class EquipmentSubmission(Base):
    """User-proposed new equipment entry."""

    __tablename__ = "equipment_submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=True)
    manufacturer = Column(String, nullable=True)
    category = Column(String(20), nullable=True)
    subcategory = Column(String(20), nullable=True)
    specifications = Column(JSONType, nullable=True)
    status = Column(String(30), nullable=False, server_default="pending")
    moderator_id = Column(
        Integer, ForeignKey("moderators.id", ondelete="SET NULL"), nullable=True
    )
    moderator_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", foreign_keys=[user_id], backref="equipment_submissions")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_equipment_submissions_status",
        ),
        Index("idx_equipment_submissions_status_created", "status", "created_at"),
    )


class ModeratorApproval(Base):
    """Ledger of moderation actions; also the approval counter for reviews."""

    __tablename__ = "moderator_approvals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    submission_type = Column(String(30), nullable=False)
    submission_id = Column(Integer, nullable=False)
    moderator_id = Column(
        Integer, ForeignKey("moderators.id", ondelete="CASCADE"), nullable=False
    )
    action = Column(String(20), nullable=False)
    source = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    moderator = relationship("Moderator", backref="actions")

    __table_args__ = (
        UniqueConstraint(
            "submission_type",
            "submission_id",
            "moderator_id",
            "action",
            name="uq_moderator_approvals_once",
        ),
        CheckConstraint(
            "action IN ('approved', 'rejected')", name="ck_moderator_approvals_action"
        ),
        CheckConstraint(
            "source IN ('admin', 'discord')", name="ck_moderator_approvals_source"
        ),
        Index("idx_moderator_approvals_submission", "submission_type", "submission_id"),
    )


class Setting(Base):
    """Application configuration."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

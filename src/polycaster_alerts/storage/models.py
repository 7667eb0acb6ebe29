"""SQLAlchemy models for persistent storage.

This module defines the database schema for price alerts and the user
contact details used to notify alert owners.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class PriceAlertModel(Base):
    """SQLAlchemy model for price alerts.

    Stores a user's target price and condition for a market along with the
    lifecycle fields maintained by the alert checker.
    """

    __tablename__ = "price_alerts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_wallet: Mapped[str] = mapped_column(String(128), nullable=False)
    market_id: Mapped[str] = mapped_column(String(128), nullable=False)
    market_question: Mapped[str] = mapped_column(Text, nullable=False)
    target_price: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    condition: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    triggered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_checked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    notification_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("condition IN ('above', 'below', 'equals')", name="ck_alert_condition"),
        CheckConstraint(
            "status IN ('active', 'triggered', 'cancelled')", name="ck_alert_status"
        ),
        CheckConstraint("target_price >= 0 AND target_price <= 1", name="valid_target_price"),
        Index("idx_price_alerts_user_wallet", "user_wallet"),
        Index("idx_price_alerts_market_id", "market_id"),
        Index("idx_price_alerts_status", "status"),
        Index("idx_price_alerts_active", "status", "last_checked_at"),
    )


class UserModel(Base):
    """SQLAlchemy model for users.

    Only the columns needed to reach an alert owner are mapped.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    wallet_address: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (Index("idx_users_wallet_address", "wallet_address"),)

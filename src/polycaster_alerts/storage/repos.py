"""Repository pattern implementations for data access.

This module provides clean data access abstractions for price alerts and
the user contact details needed to notify alert owners.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select

from polycaster_alerts.alerts.models import (
    AlertCondition,
    AlertStatus,
    OwnerContact,
    PriceAlert,
    is_valid_target_price,
)
from polycaster_alerts.errors import InvalidAlertError, InvalidTransitionError
from polycaster_alerts.storage.models import PriceAlertModel, UserModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Columns that may be changed through AlertRepository.update()
UPDATABLE_ALERT_FIELDS = frozenset(
    {
        "market_question",
        "target_price",
        "condition",
        "status",
        "triggered_at",
        "last_checked_at",
        "notification_sent",
        "notes",
    }
)


def alert_from_model(model: PriceAlertModel) -> PriceAlert:
    """Create a domain alert from a SQLAlchemy model."""
    return PriceAlert(
        id=model.id,
        owner_wallet=model.user_wallet,
        market_id=model.market_id,
        market_question=model.market_question,
        target_price=Decimal(str(model.target_price)),
        condition=model.condition,
        status=AlertStatus(model.status),
        created_at=model.created_at,
        triggered_at=model.triggered_at,
        last_checked_at=model.last_checked_at,
        notification_sent=model.notification_sent,
        notes=model.notes,
    )


def validate_target_price(value: Any) -> Decimal:
    """Coerce a target price to Decimal and check it lies in [0, 1].

    Raises:
        InvalidAlertError: If the value is not numeric or out of range.
    """
    try:
        price = Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidAlertError(f"Target price {value!r} is not a number") from e
    if not price.is_finite() or not is_valid_target_price(price):
        raise InvalidAlertError(f"Target price {value!r} must be between 0 and 1")
    return price


def validate_condition(value: Any) -> str:
    """Check that a condition is one of above, below or equals.

    Raises:
        InvalidAlertError: If the condition is not recognized.
    """
    condition = AlertCondition.parse(str(value))
    if condition is None:
        raise InvalidAlertError(f"Unknown alert condition {value!r}")
    return condition.value


@dataclass
class UserDTO:
    """Data transfer object for user contact details."""

    wallet_address: str
    email: str | None
    email_verified: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: UserModel) -> UserDTO:
        """Create DTO from SQLAlchemy model."""
        return cls(
            wallet_address=model.wallet_address,
            email=model.email,
            email_verified=model.email_verified,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_contact(self) -> OwnerContact:
        """Return the notification contact for this user."""
        return OwnerContact(address=self.email, verified=self.email_verified)


class AlertRepository:
    """Repository for price alert data access.

    Provides CRUD operations for price alerts with async support. Status
    changes are only applied to alerts that are still active.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def create(
        self,
        *,
        owner_wallet: str,
        market_id: str,
        market_question: str,
        target_price: Decimal | float | str,
        condition: str,
        notes: str | None = None,
    ) -> PriceAlert:
        """Create a new active alert.

        Args:
            owner_wallet: Wallet address of the owner.
            market_id: Market identifier.
            market_question: Market text to show in notifications.
            target_price: Threshold in [0, 1].
            condition: One of ``above``, ``below``, ``equals``.
            notes: Optional free-text note.

        Returns:
            The created PriceAlert.

        Raises:
            InvalidAlertError: If the price or condition is invalid.
        """
        model = PriceAlertModel(
            user_wallet=owner_wallet.lower(),
            market_id=market_id,
            market_question=market_question,
            target_price=validate_target_price(target_price),
            condition=validate_condition(condition),
            status=AlertStatus.ACTIVE.value,
            created_at=datetime.now(UTC),
            notification_sent=False,
            notes=notes,
        )
        self.session.add(model)
        await self.session.flush()
        logger.debug("Created alert %s for market %s", model.id, market_id)
        return alert_from_model(model)

    async def get_by_id(self, alert_id: str) -> PriceAlert | None:
        """Get an alert by id.

        Args:
            alert_id: Alert identifier.

        Returns:
            PriceAlert if found, None otherwise.
        """
        model = await self.session.get(PriceAlertModel, alert_id)
        return alert_from_model(model) if model else None

    async def list_for_owner(
        self, owner_wallet: str, status: AlertStatus | None = None
    ) -> list[PriceAlert]:
        """Get a user's alerts, newest first.

        Args:
            owner_wallet: Wallet address of the owner.
            status: Optional filter by status.

        Returns:
            List of PriceAlerts.
        """
        stmt = select(PriceAlertModel).where(PriceAlertModel.user_wallet == owner_wallet.lower())
        if status is not None:
            stmt = stmt.where(PriceAlertModel.status == status.value)
        stmt = stmt.order_by(PriceAlertModel.created_at.desc())

        result = await self.session.execute(stmt)
        return [alert_from_model(m) for m in result.scalars().all()]

    async def list_active(self) -> list[PriceAlert]:
        """Get all active alerts, oldest first."""
        result = await self.session.execute(
            select(PriceAlertModel)
            .where(PriceAlertModel.status == AlertStatus.ACTIVE.value)
            .order_by(PriceAlertModel.created_at.asc())
        )
        return [alert_from_model(m) for m in result.scalars().all()]

    async def list_by_market(
        self, market_id: str, status: AlertStatus | None = AlertStatus.ACTIVE
    ) -> list[PriceAlert]:
        """Get alerts for a market.

        Args:
            market_id: Market identifier.
            status: Status filter (default: active only). None returns all.

        Returns:
            List of PriceAlerts.
        """
        stmt = select(PriceAlertModel).where(PriceAlertModel.market_id == market_id)
        if status is not None:
            stmt = stmt.where(PriceAlertModel.status == status.value)

        result = await self.session.execute(stmt.order_by(PriceAlertModel.created_at.asc()))
        return [alert_from_model(m) for m in result.scalars().all()]

    async def update(self, alert_id: str, **changes: Any) -> PriceAlert | None:
        """Apply a partial update to an alert.

        A ``status`` change is only applied while the alert is still active,
        which keeps ``triggered`` and ``cancelled`` terminal.

        Args:
            alert_id: Alert identifier.
            **changes: Column values to set.

        Returns:
            Updated PriceAlert, or None if the alert does not exist or a
            status change was requested for an alert that is no longer active.

        Raises:
            ValueError: If an unknown field is given.
            InvalidTransitionError: If the update would re-activate an alert.
            InvalidAlertError: If a new price or condition is invalid.
        """
        unknown = set(changes) - UPDATABLE_ALERT_FIELDS
        if unknown:
            raise ValueError(f"Cannot update alert fields: {', '.join(sorted(unknown))}")

        values = dict(changes)
        stmt = select(PriceAlertModel).where(PriceAlertModel.id == alert_id)

        if "status" in values:
            new_status = AlertStatus(values["status"])
            if not new_status.is_terminal:
                raise InvalidTransitionError(f"Alert {alert_id} cannot be re-activated")
            values["status"] = new_status.value
            stmt = stmt.where(PriceAlertModel.status == AlertStatus.ACTIVE.value)
        if "target_price" in values:
            values["target_price"] = validate_target_price(values["target_price"])
        if "condition" in values:
            values["condition"] = validate_condition(values["condition"])

        result = await self.session.execute(stmt.with_for_update())
        model = result.scalar_one_or_none()
        if model is None:
            return None

        for key, value in values.items():
            setattr(model, key, value)
        await self.session.flush()
        return alert_from_model(model)

    async def cancel(self, alert_id: str) -> PriceAlert | None:
        """Cancel an active alert.

        Returns:
            The cancelled PriceAlert, or None if it was not active.
        """
        return await self.update(alert_id, status=AlertStatus.CANCELLED)

    async def delete(self, alert_id: str) -> bool:
        """Delete an alert.

        Args:
            alert_id: Alert identifier.

        Returns:
            True if deleted, False if not found.
        """
        result = await self.session.execute(
            delete(PriceAlertModel).where(PriceAlertModel.id == alert_id)
        )
        return result.rowcount > 0


class UserRepository:
    """Repository for user contact data access."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def get_by_wallet(self, wallet_address: str) -> UserDTO | None:
        """Get a user by wallet address.

        Args:
            wallet_address: Wallet address (any case).

        Returns:
            UserDTO if found, None otherwise.
        """
        result = await self.session.execute(
            select(UserModel).where(UserModel.wallet_address == wallet_address.lower())
        )
        model = result.scalar_one_or_none()
        return UserDTO.from_model(model) if model else None

    async def upsert_contact(
        self, wallet_address: str, email: str | None, *, email_verified: bool = False
    ) -> UserDTO:
        """Create a user or replace their e-mail contact details.

        Args:
            wallet_address: Wallet address.
            email: E-mail address, or None to clear it.
            email_verified: Whether the address has been verified.

        Returns:
            The stored UserDTO.
        """
        normalized = wallet_address.lower()
        result = await self.session.execute(
            select(UserModel).where(UserModel.wallet_address == normalized)
        )
        model = result.scalar_one_or_none()

        if model is None:
            model = UserModel(
                wallet_address=normalized,
                email=email,
                email_verified=email_verified,
            )
            self.session.add(model)
        else:
            model.email = email
            model.email_verified = email_verified
            model.updated_at = datetime.now(UTC)

        await self.session.flush()
        return UserDTO.from_model(model)

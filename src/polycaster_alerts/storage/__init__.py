"""Storage layer - SQLAlchemy models, repositories and the alert store."""

from polycaster_alerts.storage.models import Base, PriceAlertModel, UserModel
from polycaster_alerts.storage.repos import AlertRepository, UserDTO, UserRepository
from polycaster_alerts.storage.store import (
    SqlAlertStore,
    create_engine,
    create_session_factory,
)

__all__ = [
    "AlertRepository",
    "Base",
    "PriceAlertModel",
    "SqlAlertStore",
    "UserDTO",
    "UserModel",
    "UserRepository",
    "create_engine",
    "create_session_factory",
]

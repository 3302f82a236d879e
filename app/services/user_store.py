"""Persistence of user records.

The store hands the identity engine immutable account values rather than
ORM rows. A row maps to exactly one of ``PasswordAccount`` or
``OAuthAccount`` depending on which credential column is set.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import ConfigurationError, InternalError, StoreConflict, StoreNotFound
from app.models.user import UserRecord

logger = logging.getLogger("user_data")

# Record attributes stored in their own columns; anything else lives in UserRecord.profile
COLUMN_FIELDS = frozenset({"username", "email", "password_hash", "reset_token_hash", "reset_token_expires_at"})
IMMUTABLE_FIELDS = frozenset({"user_id", "provider"})


@dataclass(frozen=True)
class PendingReset:
    token_hash: str
    expires_at: datetime


@dataclass(frozen=True, kw_only=True)
class Account:
    """Identity fields shared by both kinds of account."""

    user_id: str
    username: str
    email: str
    profile: dict[str, Any] = field(default_factory=dict)

    def get_field(self, name: str) -> Any:
        """Value of a retrievable field, or None when unset on this account."""
        if name in ("username", "email"):
            return getattr(self, name)
        if name == "provider":
            return None
        return self.profile.get(name)


@dataclass(frozen=True, kw_only=True)
class PasswordAccount(Account):
    password_hash: str
    pending_reset: PendingReset | None = None


@dataclass(frozen=True, kw_only=True)
class OAuthAccount(Account):
    provider: str

    def get_field(self, name: str) -> Any:
        if name == "provider":
            return self.provider
        return super().get_field(name)


def _to_account(row: UserRecord) -> Account:
    common = {
        "user_id": row.user_id,
        "username": row.username,
        "email": row.email,
        "profile": dict(row.profile or {}),
    }
    if row.provider:
        return OAuthAccount(provider=row.provider, **common)

    pending = None
    if row.reset_token_hash and row.reset_token_expires_at:
        pending = PendingReset(token_hash=row.reset_token_hash, expires_at=row.reset_token_expires_at)
    return PasswordAccount(password_hash=row.password_hash, pending_reset=pending, **common)


class UserStore:
    """CRUD over the configured user table."""

    def __init__(self, db: Session, table_name: str) -> None:
        if table_name != UserRecord.__tablename__:
            raise ConfigurationError(f"Invalid Table Name '{table_name}'")
        self.db = db

    def find_by_email(self, email: str) -> Account | None:
        """Look up an account by its (normalized) email."""
        row = self.db.query(UserRecord).filter(UserRecord.email == email).first()
        return _to_account(row) if row else None

    def find_by_id(self, user_id: str) -> Account | None:
        row = self.db.get(UserRecord, user_id)
        return _to_account(row) if row else None

    def insert(self, account: Account) -> None:
        """Insert a new record. Raises StoreConflict if the email is already taken."""
        row = UserRecord(
            user_id=account.user_id,
            username=account.username,
            email=account.email,
            profile=dict(account.profile),
        )
        if isinstance(account, OAuthAccount):
            row.provider = account.provider
        else:
            row.password_hash = account.password_hash

        self.db.add(row)
        self._commit(f"Failed to insert user {account.user_id}")

    def update(self, user_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial update in one transaction. Raises StoreNotFound for unknown ids."""
        immutable = IMMUTABLE_FIELDS.intersection(fields)
        if immutable:
            raise ValueError(f"Cannot update immutable field(s): {sorted(immutable)}")

        row = self.db.get(UserRecord, user_id)
        if row is None:
            raise StoreNotFound(user_id)

        profile = dict(row.profile or {})
        for name, value in fields.items():
            if name in COLUMN_FIELDS:
                setattr(row, name, value)
            else:
                profile[name] = value
        # reassign so SQLAlchemy sees the JSON change
        row.profile = profile

        self._commit(f"Failed to update user {user_id}")

    def delete(self, user_id: str) -> None:
        """Hard delete a record. Raises StoreNotFound for unknown ids."""
        row = self.db.get(UserRecord, user_id)
        if row is None:
            raise StoreNotFound(user_id)
        self.db.delete(row)
        self._commit(f"Failed to delete user {user_id}")

    def _commit(self, failure: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            # the unique email index is the only constraint a valid write can trip
            self.db.rollback()
            raise StoreConflict(str(e.orig)) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(failure)
            raise InternalError("Database operation failed") from e

"""Identity service: registration, sign-in, profile fields and password resets.

Every failure is raised as an ``IdentityError`` subclass whose status code
the router forwards unchanged. Accounts are either password accounts or
OAuth accounts; the mode is fixed when the record is created and checked
on every credential operation.
"""

import logging
import secrets
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from email_validator import EmailNotValidError, validate_email

from app.config import IdentityConfig
from app.database import utcnow
from app.exceptions import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidCredentialsError,
    InvalidInputError,
    StoreConflict,
    StoreNotFound,
    WrongMethodError,
    WrongProviderError,
)
from app.services.hasher import CredentialHasher
from app.services.notifier import (
    PASSWORD_CHANGED_SUBJECT,
    RESET_TOKEN_SUBJECT,
    NotificationError,
    Notifier,
    render_password_changed_email,
    render_reset_token_email,
)
from app.services.user_store import OAuthAccount, PasswordAccount, UserStore

logger = logging.getLogger("user_data")

RESET_TOKEN_BYTES = 10  # 80 bits
AUTHENTICATION_ERROR = "Authentication Error (Incorrect email or password)"
SAME_PASSWORD_ERROR = "New password cannot be the same as your old password"
INVALID_TOKEN_ERROR = "Invalid Token"
UNKNOWN_EMAIL_ERROR = "Email does not exist"
UNKNOWN_USER_ERROR = "User Id does not exist"


@dataclass
class RegisteredUser:
    """Result of a successful registration."""

    user_id: str
    username: str
    email: str


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _is_valid_email(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


class IdentityService:
    """Implements the credential lifecycle over a UserStore."""

    def __init__(
        self,
        store: UserStore,
        hasher: CredentialHasher,
        notifier: Notifier,
        config: IdentityConfig,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.notifier = notifier
        self.config = config
        self.clock = clock

    # --- Registration and sign-in ---

    def register(self, username: str, password: str, email: str) -> RegisteredUser:
        """Create a password account. Raises InvalidInputError or ConflictError."""
        email = normalize_email(email)
        if not _is_valid_email(email):
            raise InvalidInputError("Invalid Email")

        existing = self.store.find_by_email(email)
        if existing:
            hint = f" Did you mean to sign in using {existing.provider}?" if isinstance(existing, OAuthAccount) else ""
            raise ConflictError(f"Email has been taken.{hint}")

        account = PasswordAccount(
            user_id=str(uuid.uuid4()),
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
        )
        try:
            self.store.insert(account)
        except StoreConflict:
            raise ConflictError("Email has been taken.") from None

        logger.info("Registered user %s", account.user_id)
        return RegisteredUser(user_id=account.user_id, username=account.username, email=account.email)

    def authenticate(self, email: str, password: str) -> str:
        """Verify a password sign-in and return the user id.

        Unknown emails and wrong passwords raise the same InvalidCredentialsError
        so callers cannot probe which addresses are registered.
        """
        account = self.store.find_by_email(normalize_email(email))

        if isinstance(account, OAuthAccount):
            raise WrongProviderError(
                f"You previously signed up using {account.provider}. Please use that to sign in instead.",
                provider=account.provider,
            )

        if isinstance(account, PasswordAccount) and self.hasher.verify(password, account.password_hash):
            return account.user_id

        raise InvalidCredentialsError(AUTHENTICATION_ERROR)

    def authenticate_or_register_oauth(self, username: str, provider: str, email: str) -> str:
        """Sign in an OAuth user, creating the account on first sight.

        The first provider an email signs in with is the only one accepted afterwards.
        """
        email = normalize_email(email)
        account = self.store.find_by_email(email)

        if isinstance(account, PasswordAccount):
            raise WrongMethodError("You signed up with a password. Please sign in with your password instead.")
        if isinstance(account, OAuthAccount):
            if account.provider != provider:
                raise WrongProviderError(
                    f"You first signed up via {account.provider}. Please use that provider instead.",
                    provider=account.provider,
                )
            return account.user_id

        new_account = OAuthAccount(user_id=str(uuid.uuid4()), username=username, email=email, provider=provider)
        try:
            self.store.insert(new_account)
        except StoreConflict:
            raise ConflictError("Email has been taken.") from None

        logger.info("Registered OAuth user %s via %s", new_account.user_id, provider)
        return new_account.user_id

    # --- Profile fields ---

    def set_profile(self, user_id: str, fields: dict[str, Any]) -> None:
        """Write mutable profile fields. Nothing is written unless every field is allowed."""
        if not fields:
            raise InvalidInputError("No user fields provided")

        updates = {}
        for name, value in fields.items():
            if name.lower() not in self.config.mutable_fields:
                raise InvalidInputError(f"User field '{name}' is invalid")
            if name.lower() == "email":
                value = normalize_email(value)
                if not _is_valid_email(value):
                    raise InvalidInputError("Invalid Email")
            updates[name.lower()] = value

        try:
            self.store.update(user_id, updates)
        except StoreNotFound:
            raise InvalidInputError(UNKNOWN_USER_ERROR) from None
        except StoreConflict:
            raise ConflictError("Email has been taken.") from None

    def get_profile(self, user_id: str, fields: Iterable[str]) -> dict[str, Any]:
        """Read retrievable fields. Only fields set on the record are returned."""
        requested = [name.strip() for name in fields if name.strip()]
        if not requested:
            raise InvalidInputError("No user fields requested")
        for name in requested:
            if name.lower() not in self.config.retrievable_fields:
                raise InvalidInputError(f"User field '{name}' is invalid")

        account = self.store.find_by_id(user_id)
        if account is None:
            raise InvalidInputError("Invalid User Id")

        values = {}
        for name in requested:
            value = account.get_field(name.lower())
            if value is not None:
                values[name] = value
        if not values:
            raise InvalidInputError(f"Uninitialised value/s: '{','.join(requested)}'")
        return values

    # --- Password lifecycle ---

    def change_password(self, email: str, old_password: str, new_password: str) -> None:
        if old_password == new_password:
            raise InvalidInputError(SAME_PASSWORD_ERROR)

        try:
            user_id = self.authenticate(email, old_password)
        except WrongProviderError:
            raise ForbiddenError(
                "You cannot change your password as you signed in with a third-party provider."
            ) from None

        self._update(user_id, {"password_hash": self.hasher.hash(new_password)})
        logger.info("Password changed for user %s", user_id)

    def delete_user(self, user_id: str) -> None:
        try:
            self.store.delete(user_id)
        except StoreNotFound:
            raise InvalidInputError(UNKNOWN_USER_ERROR) from None
        logger.info("Deleted user %s", user_id)

    def issue_reset_token(self, email: str) -> str:
        """Store a hashed single-use reset token and email the plaintext to the user.

        The plaintext token is returned for diagnostics only and must not be
        sent back to API callers.
        """
        account = self._find_password_account(email)

        token = secrets.token_hex(RESET_TOKEN_BYTES)
        expires_at = self.clock() + self.config.reset_token_ttl
        # persisted before sending so every emailed token has a stored hash
        self._update(
            account.user_id,
            {"reset_token_hash": self.hasher.hash(token), "reset_token_expires_at": expires_at},
        )

        ttl_minutes = int(self.config.reset_token_ttl.total_seconds() // 60)
        self._send(account.email, RESET_TOKEN_SUBJECT, render_reset_token_email(token, ttl_minutes))
        logger.info("Issued password reset token for user %s", account.user_id)
        return token

    def reset_password(self, email: str, token: str, new_password: str) -> None:
        """Consume a reset token and set a new password."""
        account = self._find_password_account(email)

        if self.hasher.verify(new_password, account.password_hash):
            raise InvalidInputError(SAME_PASSWORD_ERROR)

        pending = account.pending_reset
        if pending is None:
            raise InvalidInputError(INVALID_TOKEN_ERROR)

        if self.clock() >= pending.expires_at:
            self._update(account.user_id, {"reset_token_hash": None, "reset_token_expires_at": None})
            logger.info("Expired password reset token cleared for user %s", account.user_id)
            raise InvalidInputError(INVALID_TOKEN_ERROR)

        if not self.hasher.verify(token, pending.token_hash):
            logger.warning("Password reset with wrong token for user %s", account.user_id)
            raise InvalidInputError(INVALID_TOKEN_ERROR)

        self._update(
            account.user_id,
            {
                "password_hash": self.hasher.hash(new_password),
                "reset_token_hash": None,
                "reset_token_expires_at": None,
            },
        )
        logger.info("Password reset for user %s", account.user_id)

        # a send failure still fails the call, although the password has changed
        self._send(account.email, PASSWORD_CHANGED_SUBJECT, render_password_changed_email())

    # --- Helpers ---

    def _find_password_account(self, email: str) -> PasswordAccount:
        """Resolve the password account a reset request refers to."""
        email = normalize_email(email)
        if not _is_valid_email(email):
            raise InvalidInputError(UNKNOWN_EMAIL_ERROR)

        account = self.store.find_by_email(email)
        if isinstance(account, OAuthAccount):
            raise ForbiddenError(
                f"You previously signed up using {account.provider}, so you do not have a password to reset."
            )
        if account is None:
            raise InvalidInputError(UNKNOWN_EMAIL_ERROR)
        return account

    def _update(self, user_id: str, fields: dict[str, Any]) -> None:
        try:
            self.store.update(user_id, fields)
        except StoreNotFound:
            # deleted between lookup and write
            raise InvalidInputError(UNKNOWN_USER_ERROR) from None

    def _send(self, to_address: str, subject: str, html_body: str) -> None:
        try:
            self.notifier.send(to_address, subject, html_body)
        except NotificationError as e:
            raise InternalError("Email failed to send") from e

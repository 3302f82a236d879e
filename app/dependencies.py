"""Service wiring for FastAPI routes."""

from fastapi import Depends
from sqlalchemy.orm import Session

from app.config import IdentityConfig, get_settings
from app.database import get_db
from app.services.hasher import CredentialHasher, get_hasher
from app.services.identity import IdentityService
from app.services.notifier import Notifier, get_notifier
from app.services.user_store import UserStore


def get_identity_config() -> IdentityConfig:
    """Engine configuration derived from the process settings."""
    return get_settings().identity_config()


def get_identity_service(
    db: Session = Depends(get_db),
    hasher: CredentialHasher = Depends(get_hasher),
    notifier: Notifier = Depends(get_notifier),
    config: IdentityConfig = Depends(get_identity_config),
) -> IdentityService:
    """Build a request-scoped identity service over the request's DB session."""
    store = UserStore(db, config.table_name)
    return IdentityService(store=store, hasher=hasher, notifier=notifier, config=config)

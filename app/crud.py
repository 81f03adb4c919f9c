# app/crud.py
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from .errors import (
    DuplicateEmailError,
    SchemaNotProvisionedError,
    StorageConnectionError,
    StorageError,
)
from .models import User, utcnow


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    # psycopg 3 exposes .sqlstate, psycopg2 exposes .pgcode
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _is_unique_violation(exc: IntegrityError) -> bool:
    if _sqlstate(exc) == "23505":
        return True
    return "UNIQUE constraint failed" in str(exc.orig)


def _is_missing_table(exc: DBAPIError) -> bool:
    if _sqlstate(exc) == "42P01":
        return True
    return "no such table" in str(exc.orig)


# driver messages for failures that happen before any SQLSTATE is available
_CONNECT_SIGNATURES = (
    "unable to open database file",
    "connection failed",
    "could not connect",
    "connection refused",
    "could not translate host name",
    "name or service not known",
    "server closed the connection",
    "timeout expired",
)


def _is_connection_failure(exc: DBAPIError) -> bool:
    if exc.connection_invalidated or isinstance(exc, InterfaceError):
        return True
    if not isinstance(exc, OperationalError):
        return False
    state = _sqlstate(exc)
    if state is not None:
        return state.startswith("08")
    message = str(exc.orig).lower()
    return any(sig in message for sig in _CONNECT_SIGNATURES)


@contextmanager
def storage_errors() -> Iterator[None]:
    """
    Translate driver exceptions into the typed storage errors the handler matches on.
    Anything unrecognised propagates unchanged.
    """
    try:
        yield
    except IntegrityError as exc:
        if _is_unique_violation(exc):
            raise DuplicateEmailError(str(exc.orig)) from exc
        raise StorageError(str(exc.orig)) from exc
    except DBAPIError as exc:
        if _is_missing_table(exc):
            raise SchemaNotProvisionedError(str(exc.orig)) from exc
        if _is_connection_failure(exc):
            raise StorageConnectionError(str(exc.orig)) from exc
        raise


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    with storage_errors():
        return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def create_user(db: Session, **fields) -> User:
    user = User(**fields)
    with storage_errors():
        db.add(user)
        db.commit()
        db.refresh(user)
    return user


def set_verification_code(db: Session, user_id: int, code: str, expires_at: datetime) -> None:
    with storage_errors():
        result = db.execute(
            update(User)
            .where(User.id == user_id)
            .values(verification_code=code, verification_code_expires=expires_at, updated_at=utcnow())
        )
        db.commit()
    if result.rowcount == 0:
        raise StorageError(f"user {user_id} not found")


def mark_email_verified(db: Session, user: User) -> User:
    user.email_verified = True
    user.verification_code = None
    user.verification_code_expires = None
    with storage_errors():
        db.add(user)
        db.commit()
        db.refresh(user)
    return user

# app/registration.py
"""
Registration workflow.

validate -> duplicate check -> hash -> insert -> best-effort verification
code + email -> sanitized response. Every failure is mapped to a single
(status, body) pair by error_response(); nothing escapes handle_registration().

The pre-insert duplicate lookup is not atomic with the insert. Two concurrent
requests for the same email can both pass it; the unique index on users.email
rejects the second insert, which surfaces here as DuplicateEmailError.
"""
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import ValidationError

from . import crud, security
from .config import Settings
from .db import SessionFactory
from .errors import (
    ConfigurationMissing,
    DuplicateEmailError,
    EmailAlreadyRegistered,
    RegistrationError,
    SchemaNotProvisionedError,
    StorageConnectionError,
    ValidationFailed,
)
from .mailer import Mailer, verification_email_html, verification_subject
from .models import utcnow
from .schemas import RegisterRequest, UserPublic

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = (
    "Registration successful! Please check your email to verify your account before signing in."
)


def _parse(raw_body: bytes) -> RegisterRequest:
    try:
        return RegisterRequest.model_validate_json(raw_body or b"")
    except ValidationError as exc:
        # round-trip through JSON so ctx values (exceptions, etc.) are serializable
        issues = json.loads(exc.json(include_url=False, include_input=False))
        raise ValidationFailed(issues) from exc


def _best_effort(step: str, fn: Callable[[], Any]) -> bool:
    try:
        result = fn()
    except Exception:
        logger.warning("Best-effort step failed: %s", step, exc_info=True)
        return False
    if result is False:
        logger.warning("Best-effort step did not complete: %s", step)
        return False
    return True


def _store_verification_code(session_factory: SessionFactory, user_id: int, code: str, expires_at) -> None:
    with session_factory() as db:
        crud.set_verification_code(db, user_id, code, expires_at)


def register_user(
    raw_body: bytes,
    *,
    settings: Settings,
    session_factory: Optional[SessionFactory],
    mailer: Mailer,
) -> Dict[str, Any]:
    if session_factory is None:
        logger.error("DATABASE_URL not set")
        raise ConfigurationMissing()

    data = _parse(raw_body)
    email = data.email
    logger.info("Registration requested for %s (role=%s)", email, data.role)

    with session_factory() as db:
        if crud.get_user_by_email(db, email) is not None:
            logger.info("User already exists: %s", email)
            raise EmailAlreadyRegistered()

        password_hash = security.hash_password(data.password)
        now = utcnow()
        user = crud.create_user(
            db,
            email=email,
            password_hash=password_hash,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            role=data.role,
            school_id=data.school_id,
            business_reg_number=data.business_reg_number,
            address=data.address,
            profile_image_url=data.profile_image_url,
            terms_accepted=data.terms_accepted,
            terms_accepted_at=now,
            verified_status=data.role != "agent",
            email_verified=False,
        )
        user_id = user.id
        public = UserPublic.model_validate(user).model_dump(mode="json")

    logger.info("User created: id=%s email=%s", user_id, email)

    code = security.generate_verification_code()
    expires_at = security.verification_expiry(utcnow())
    _best_effort(
        "store verification code",
        lambda: _store_verification_code(session_factory, user_id, code, expires_at),
    )

    user_name = f"{data.first_name} {data.last_name or ''}".strip()
    _best_effort(
        "send verification email",
        lambda: mailer.send(
            email,
            verification_subject(settings.APP_NAME),
            verification_email_html(code, user_name, settings.APP_NAME),
        ),
    )

    if data.role == "agent":
        # the verification queue is filled downstream, not by this handler
        logger.info("Agent registered, pending manual verification: id=%s", user_id)

    return {"success": True, "user": public, "message": SUCCESS_MESSAGE}


def error_response(exc: Exception, settings: Settings) -> Tuple[int, Dict[str, Any]]:
    if isinstance(exc, RegistrationError):
        return exc.status_code, exc.to_body()

    if isinstance(exc, StorageConnectionError):
        return 500, {
            "success": False,
            "message": "Database connection failed. Please check your DATABASE_URL.",
        }

    if isinstance(exc, DuplicateEmailError):
        return 400, {"success": False, "message": "Email already exists"}

    if isinstance(exc, SchemaNotProvisionedError):
        return 500, {
            "success": False,
            "message": "Database tables not found. Please run the database migrations first.",
        }

    body: Dict[str, Any] = {"success": False, "message": "Internal server error"}
    if settings.is_development:
        body["error"] = str(exc)
    return 500, body


def handle_registration(
    raw_body: bytes,
    *,
    settings: Settings,
    session_factory: Optional[SessionFactory],
    mailer: Mailer,
) -> Tuple[int, Dict[str, Any]]:
    try:
        body = register_user(raw_body, settings=settings, session_factory=session_factory, mailer=mailer)
    except ValidationFailed as exc:
        logger.warning("Validation error: %d issue(s)", len(exc.issues))
        return error_response(exc, settings)
    except (RegistrationError, DuplicateEmailError) as exc:
        logger.warning("Registration rejected: %s", exc)
        return error_response(exc, settings)
    except (StorageConnectionError, SchemaNotProvisionedError) as exc:
        logger.error("Registration storage failure: %s", exc)
        return error_response(exc, settings)
    except Exception as exc:
        logger.exception("Registration error")
        return error_response(exc, settings)
    return 201, body

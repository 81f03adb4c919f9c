# app/api.py
import logging
from datetime import timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import crud, security
from .config import Settings, get_settings
from .db import SessionFactory, get_db, get_session_factory
from .errors import StorageError
from .mailer import Mailer, get_mailer, verification_email_html, verification_subject
from .models import utcnow
from .registration import handle_registration
from .schemas import OkResult, ResendVerificationRequest, VerifyEmailRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def _aware(dt):
    # SQLite hands back naive datetimes; everything is stored as UTC
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------
@router.get("/health")
def health():
    return {"ok": True}


@router.post("/auth/register", status_code=201)
async def register(
    request: Request,
    settings: Settings = Depends(get_settings),
    session_factory: Optional[SessionFactory] = Depends(get_session_factory),
    mailer: Mailer = Depends(get_mailer),
):
    raw = await request.body()
    status_code, body = await run_in_threadpool(
        handle_registration,
        raw,
        settings=settings,
        session_factory=session_factory,
        mailer=mailer,
    )
    return JSONResponse(status_code=status_code, content=body)


@router.post("/auth/verify-email", response_model=OkResult)
def verify_email(payload: VerifyEmailRequest, db: Session = Depends(get_db)):
    email = payload.email
    try:
        user = crud.get_user_by_email(db, email)
    except StorageError:
        logger.exception("Email verification lookup failed")
        raise HTTPException(status_code=500, detail="Database error")

    if user is None:
        raise HTTPException(status_code=400, detail="Invalid or expired verification code")
    if user.email_verified:
        return OkResult(success=True, message="Email already verified")

    expires = _aware(user.verification_code_expires)
    if not user.verification_code or expires is None or expires < utcnow():
        raise HTTPException(status_code=400, detail="Invalid or expired verification code")
    if user.verification_code != payload.code:
        raise HTTPException(status_code=400, detail="Invalid or expired verification code")

    try:
        crud.mark_email_verified(db, user)
    except StorageError:
        logger.exception("Could not mark email verified: %s", email)
        raise HTTPException(status_code=500, detail="Database error")

    logger.info("Email verified: %s", email)
    return OkResult(success=True, message="Email verified")


@router.post("/auth/resend-verification", response_model=OkResult)
def resend_verification(
    payload: ResendVerificationRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
):
    email = payload.email
    ok = OkResult(success=True, message="If the account exists, a new code has been sent.")

    try:
        user = crud.get_user_by_email(db, email)
    except StorageError:
        logger.exception("Resend verification lookup failed")
        raise HTTPException(status_code=500, detail="Database error")

    # Always return ok (don't leak which emails exist)
    if user is None or user.email_verified:
        return ok

    code = security.generate_verification_code()
    try:
        crud.set_verification_code(db, user.id, code, security.verification_expiry(utcnow()))
    except StorageError:
        logger.exception("Could not store verification code: %s", email)
        raise HTTPException(status_code=500, detail="Database error")

    user_name = f"{user.first_name} {user.last_name or ''}".strip()
    if not mailer.send(email, verification_subject(settings.APP_NAME), verification_email_html(code, user_name, settings.APP_NAME)):
        logger.warning("Could not send verification email to %s", email)

    return ok

import hashlib
import secrets
from datetime import datetime, timedelta

import bcrypt

BCRYPT_ROUNDS = 12
VERIFICATION_CODE_TTL = timedelta(minutes=15)


def _bcrypt_input(password: str) -> bytes:
    """
    bcrypt only accepts up to 72 bytes.
    If longer, pre-hash to 32 bytes (SHA-256) first.
    """
    raw = password.encode("utf-8")
    if len(raw) <= 72:
        return raw
    return hashlib.sha256(raw).digest()


def hash_password(password: str) -> str:
    pw = _bcrypt_input(password)
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(pw, salt).decode("utf-8")


def generate_verification_code() -> str:
    # uniform over 000000-999999
    return f"{secrets.randbelow(1_000_000):06d}"


def verification_expiry(now: datetime) -> datetime:
    return now + VERIFICATION_CODE_TTL

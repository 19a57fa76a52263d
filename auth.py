"""
auth.py
Owner accounts (bcrypt hashing, sign up, login, change password).

Each account owns its own schools and students; the user id returned here is
what FeeStore is scoped by.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import bcrypt
import db

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthError(Exception):
    pass


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str) -> str:
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(secret, salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    secret = _to_bcrypt_secret(password)
    stored = password_hash.encode("utf-8")
    return bcrypt.checkpw(secret, stored)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(email: str):
    return db.fetch_one("SELECT * FROM users WHERE email = ?", (_normalize_email(email),))


def sign_up(email: str, password: str) -> int:
    email = _normalize_email(email)
    if "@" not in email:
        raise AuthError("Enter a valid email address.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if get_user_by_email(email):
        raise AuthError("An account with this email already exists.")
    now = datetime.now(timezone.utc).isoformat(timespec="seconds")
    user_id = db.execute(
        "INSERT INTO users(email, password_hash, created_at) VALUES(?,?,?)",
        (email, hash_password(password), now),
    )
    logger.info("created account %s", user_id)
    return user_id


def login(email: str, password: str) -> int | None:
    user = get_user_by_email(email)
    if not user:
        return None
    if not verify_password(password, user["password_hash"]):
        logger.warning("failed login for account %s", user["id"])
        return None
    return int(user["id"])


def change_password(user_id: int, new_password: str) -> None:
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    db.execute(
        "UPDATE users SET password_hash = ? WHERE id = ?",
        (hash_password(new_password), user_id),
    )

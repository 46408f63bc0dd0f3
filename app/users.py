import hashlib
import logging
import secrets
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import errors
import models_sqlalchemy as models
import models_pydantic as schemas

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str, salt: Optional[str] = None) -> Tuple[str, str]:
    salt = salt or secrets.token_hex(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), 100_000)
    return dk.hex(), salt


def register_user(db: Session, payload: schemas.UserCreate) -> models.User:
    if payload.password != payload.confirm_password:
        raise errors.ValidationError("Passwords do not match")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise errors.ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    email = payload.email.lower()
    existing = (
        db.query(models.User)
        .filter((models.User.email == email) | (models.User.username == payload.username))
        .first()
    )
    if existing:
        raise errors.AlreadyExists("User already exists with this email or username")
    pw_hash, salt = hash_password(payload.password)
    user = models.User(
        username=payload.username,
        email=email,
        full_name=payload.full_name,
        password_hash=pw_hash,
        password_salt=salt
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise errors.AlreadyExists("User already exists with this email or username") from exc
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> models.User:
    user = db.query(models.User).filter(models.User.email == email.lower()).first()
    if not user:
        raise errors.Unauthorized("Invalid email or password")
    calc_hash, _ = hash_password(password, user.password_salt)
    if not secrets.compare_digest(calc_hash, user.password_hash):
        raise errors.Unauthorized("Invalid email or password")
    return user


def get_user(db: Session, user_id: str) -> Optional[models.User]:
    return db.get(models.User, user_id)

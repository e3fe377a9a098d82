"""
One-time creation of the first admin account.

The /admin endpoints (rating recalculation, leaderboard rebuild, hold sweep)
need an admin user, and /auth/register only creates students and mentors.

Usage:
  ENABLE_ADMIN_BOOTSTRAP=true \
  ADMIN_BOOTSTRAP_CONFIRM=CREATE-FIRST-ADMIN \
  ADMIN_NAME="Ops" ADMIN_EMAIL=ops@example.com ADMIN_PASSWORD=... \
  python -m app.scripts.bootstrap_admin
"""

import logging
import os
import re
import sys
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from app import models
from app.database import SessionLocal
from app.utils.security import get_password_hash

logger = logging.getLogger(__name__)

CONFIRM_PHRASE = "CREATE-FIRST-ADMIN"
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _is_truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _required(env: Mapping[str, str], key: str) -> str:
    value = (env.get(key) or "").strip()
    if not value:
        raise ValueError(f"Missing required environment variable: {key}")
    return value


def _validate_password(password: str) -> None:
    if len(password) < 8:
        raise ValueError("ADMIN_PASSWORD must be at least 8 characters.")
    if len(password.encode("utf-8")) > 72:
        raise ValueError("ADMIN_PASSWORD must be <= 72 bytes (bcrypt limit).")
    if not re.search(r"[A-Z]", password) or not re.search(r"[a-z]", password) or not re.search(r"\d", password):
        raise ValueError("ADMIN_PASSWORD needs an uppercase letter, a lowercase letter and a digit.")


def create_first_admin(db: Session, env: Mapping[str, str]) -> models.User:
    """
    Validate the bootstrap environment and insert the admin user.

    Raises:
        ValueError: Bootstrap disabled, bad input, or an admin already exists
    """
    if not _is_truthy(env.get("ENABLE_ADMIN_BOOTSTRAP")):
        raise ValueError("Bootstrap disabled. Set ENABLE_ADMIN_BOOTSTRAP=true to run.")
    if _required(env, "ADMIN_BOOTSTRAP_CONFIRM") != CONFIRM_PHRASE:
        raise ValueError(f"Invalid ADMIN_BOOTSTRAP_CONFIRM. Expected exact phrase: {CONFIRM_PHRASE}")

    name = _required(env, "ADMIN_NAME")
    email = _required(env, "ADMIN_EMAIL").lower()
    password = _required(env, "ADMIN_PASSWORD")

    if not EMAIL_RE.match(email):
        raise ValueError("ADMIN_EMAIL is not a valid email format.")
    _validate_password(password)

    if db.query(models.User).filter(models.User.role == models.UserRole.ADMIN.value).count() > 0:
        raise ValueError("Admin bootstrap blocked: an admin already exists.")
    if db.query(models.User).filter(models.User.email == email).first():
        raise ValueError("ADMIN_EMAIL is already registered.")

    user = models.User(
        name=name,
        email=email,
        password_hash=get_password_hash(password),
        role=models.UserRole.ADMIN.value,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Admin %s created", email)
    return user


def bootstrap_admin(env: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if env is None else env
    db = SessionLocal()
    try:
        user = create_first_admin(db, env)
        print(f"Admin created successfully: {user.email}")
        return 0
    except ValueError as exc:
        db.rollback()
        print(f"Admin bootstrap failed: {exc}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    raise SystemExit(bootstrap_admin())

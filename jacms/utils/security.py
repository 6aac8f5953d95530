"""Password hashing and bearer tokens for admin users."""

from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from jwt.exceptions import PyJWTError

# Claims every token must carry; ``sub`` is the user id
REQUIRED_CLAIMS = ["exp", "iat", "sub"]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against a stored bcrypt hash; malformed hashes never match."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user_id: str, username: str, role: str, config) -> str:
    """Sign a token for ``user_id`` using the configured key, algorithm and lifetime."""
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "username": username,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=config.jwt_expiry_minutes),
    }
    return jwt.encode(claims, config.secret_key, algorithm=config.jwt_algorithm)


def decode_access_token(token: str, config) -> dict | None:
    """Validated claims of ``token``, or None when it is malformed, expired or forged."""
    try:
        return jwt.decode(
            token,
            config.secret_key,
            algorithms=[config.jwt_algorithm],
            options={"require": REQUIRED_CLAIMS},
        )
    except PyJWTError:
        return None

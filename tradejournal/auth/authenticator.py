from __future__ import annotations

import hashlib
import secrets
import time
from typing import Any, Optional

import jwt

from tradejournal.utils.config import Settings, get_settings
from tradejournal.utils.exceptions import AuthenticationError, AuthorizationError
from tradejournal.utils.logger import get_logger

logger = get_logger(__name__)

HASH_ALGORITHM = "pbkdf2_sha256"
HASH_ITERATIONS = 260_000
SALT_BYTES = 16


def hash_password(password: str, iterations: int = HASH_ITERATIONS) -> str:
    """Salted PBKDF2-SHA256 hash encoded as algorithm$iterations$salt$digest."""
    salt = secrets.token_hex(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"),
                                 salt.encode("utf-8"), iterations).hex()
    return f"{HASH_ALGORITHM}${iterations}${salt}${digest}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, digest = encoded.split("$", 3)
        rounds = int(iterations)
    except (AttributeError, ValueError):
        return False
    if algorithm != HASH_ALGORITHM:
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"),
                                    salt.encode("utf-8"), rounds).hex()
    # Timing-safe comparison
    return secrets.compare_digest(candidate, digest)


def parse_bearer(header: Optional[str]) -> str:
    """Extract the token from an Authorization header value."""
    if not header:
        raise AuthenticationError("Access token required")
    parts = header.split(" ", 1)
    token = parts[1].strip() if len(parts) == 2 else ""
    if parts[0].lower() != "bearer" or not token:
        raise AuthenticationError("Access token required")
    return token


class TokenAuthenticator:
    """Issues and verifies signed bearer tokens carrying the user id."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        if self._settings.jwt_secret == "secret":
            logger.warning("security_warning", msg="JWT_SECRET not set - using insecure default")

    def issue_token(self, user_id: int, email: str) -> str:
        now = int(time.time())
        payload = {
            "userId": user_id,
            "email": email,
            "iat": now,
            "exp": now + self._settings.jwt_expires_hours * 3600,
        }
        return jwt.encode(payload, self._settings.jwt_secret,
                          algorithm=self._settings.jwt_algorithm)

    def verify_token(self, token: str) -> dict[str, Any]:
        """Decode a token. Raises AuthorizationError if invalid or expired."""
        try:
            claims = jwt.decode(token, self._settings.jwt_secret,
                                algorithms=[self._settings.jwt_algorithm])
        except jwt.ExpiredSignatureError as e:
            logger.info("token_expired")
            raise AuthorizationError("Invalid or expired token") from e
        except jwt.PyJWTError as e:
            logger.warning("token_invalid", error=str(e))
            raise AuthorizationError("Invalid or expired token") from e
        if not isinstance(claims.get("userId"), int):
            raise AuthorizationError("Invalid or expired token")
        return claims

    def authenticate_header(self, header: Optional[str]) -> int:
        """Authorization header -> user id."""
        return self.verify_token(parse_bearer(header))["userId"]

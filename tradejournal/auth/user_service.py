from __future__ import annotations

from typing import Any, Optional

from tradejournal.auth.authenticator import TokenAuthenticator, hash_password, verify_password
from tradejournal.journal.journal_models import User
from tradejournal.journal.journal_store import JournalStore
from tradejournal.utils.exceptions import AuthenticationError, ConflictError, NotFoundError
from tradejournal.utils.logger import get_logger

logger = get_logger(__name__)


class UserService:
    def __init__(self, store: JournalStore, authenticator: TokenAuthenticator) -> None:
        self._store = store
        self._auth = authenticator

    def register(self, email: str, password: str, username: str,
                 first_name: str = "", last_name: str = "") -> dict[str, Any]:
        """Create a user and sign them in. Raises ConflictError if taken."""
        if self._store.user_exists(email, username):
            logger.info("register_conflict", email=email, username=username)
            raise ConflictError("User already exists")

        user = self._store.create_user(User(
            email=email,
            username=username,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
        ))
        logger.info("user_registered", user_id=user.id)
        return self._session_payload(user)

    def login(self, email: str, password: str) -> dict[str, Any]:
        user = self._store.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning("login_failed", email=email)
            raise AuthenticationError("Invalid credentials")
        logger.info("user_logged_in", user_id=user.id)
        return self._session_payload(user)

    def get_profile(self, user_id: int) -> dict[str, Any]:
        user = self._store.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user.to_dict()

    def update_profile(self, user_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        user: Optional[User] = self._store.update_user(user_id, changes)
        if not user:
            raise NotFoundError("User not found")
        logger.info("profile_updated", user_id=user_id, fields=sorted(k for k, v in changes.items() if v is not None))
        return user.to_dict()

    def _session_payload(self, user: User) -> dict[str, Any]:
        token = self._auth.issue_token(user.id, user.email)
        return {"token": token, "user": user.to_dict()}

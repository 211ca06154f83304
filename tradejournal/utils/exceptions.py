from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORAGE = "storage"
    NETWORK = "network"
    SYSTEM = "system"


class JournalError(Exception):
    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        status_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.category = category
        self.status_code = status_code
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.category.value}] {self.message}"]
        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")
        return " | ".join(parts)


class AuthenticationError(JournalError):
    def __init__(self, message: str, status_code: Optional[int] = 401) -> None:
        super().__init__(message, ErrorCategory.AUTHENTICATION, status_code)


class AuthorizationError(JournalError):
    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message, ErrorCategory.AUTHORIZATION, 403)


class ValidationError(JournalError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCategory.VALIDATION, 400)


class ConflictError(JournalError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCategory.CONFLICT, 400)


class NotFoundError(JournalError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCategory.NOT_FOUND, 404)


class StorageError(JournalError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCategory.STORAGE, 503)


class NetworkError(JournalError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message, ErrorCategory.NETWORK, status_code)

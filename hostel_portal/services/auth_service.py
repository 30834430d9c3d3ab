"""Session handling for the bearer token attached to every API request."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Optional

from hostel_portal.domain.models import SessionIdentity
from hostel_portal.repository.api_repository import HostelApiRepository
from hostel_portal.repository.state_store import LocalStateStore
from hostel_portal.utils.logger import get_logger


logger = get_logger(__name__)

ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"


class AuthenticationError(Exception):
    """Base session failure."""


class NotLoggedInError(AuthenticationError):
    """Raised when an operation needs a session and none is stored."""


class StudentIdentityError(AuthenticationError):
    """Raised when the current student cannot be identified."""


def decode_token_claims(token: str) -> dict[str, Any]:
    """Read the JWT payload segment without verifying the signature.

    Only used to learn the caller's id; the server still validates the token.
    """
    parts = token.split(".")
    if len(parts) < 2:
        return {}
    segment = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment.encode("ascii")))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return {}
    return claims if isinstance(claims, dict) else {}


class AuthService:
    """Owns the current token and keeps it in durable local state."""

    def __init__(self, repository: HostelApiRepository, state_store: LocalStateStore) -> None:
        self._repository = repository
        self._state_store = state_store
        self._identity: Optional[SessionIdentity] = state_store.load_session()
        self._repository.set_token_provider(self.current_token)

    @property
    def identity(self) -> Optional[SessionIdentity]:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def current_token(self) -> Optional[str]:
        return self._identity.token if self._identity else None

    def require_identity(self) -> SessionIdentity:
        if self._identity is None:
            raise NotLoggedInError("Please log in to continue")
        return self._identity

    def _store(self, identity: SessionIdentity) -> SessionIdentity:
        self._identity = identity
        self._state_store.save_session(identity)
        logger.info("Session started for %s %s", identity.role, identity.user_id or "<unknown>")
        return identity

    def login_student(self, matric_number: str, email: str) -> SessionIdentity:
        if not matric_number.strip() or not email.strip():
            raise AuthenticationError("Matric number and email are required")
        payload = self._repository.login_student(matric_number.strip(), email.strip())
        return self._store(
            SessionIdentity(role=ROLE_STUDENT, user_id=payload.user_id(), token=payload.token)
        )

    def login_admin(self, email: str, password: str) -> SessionIdentity:
        if not email.strip() or not password:
            raise AuthenticationError("Email and password are required")
        payload = self._repository.login_admin(email.strip(), password)
        return self._store(
            SessionIdentity(role=ROLE_ADMIN, user_id=payload.user_id(), token=payload.token)
        )

    def use_token(self, token: str, role: str = ROLE_STUDENT) -> SessionIdentity:
        """Adopt a token obtained elsewhere, e.g. from an environment variable."""
        claims = decode_token_claims(token)
        user_id = str(claims.get("studentId") or claims.get("id") or claims.get("sub") or "")
        return self._store(SessionIdentity(role=role, user_id=user_id, token=token))

    def logout(self) -> None:
        self._identity = None
        self._state_store.clear_session()
        logger.info("Session cleared")

    def resolve_student_id(self) -> str:
        """Stored id, then token claims, then ``GET /auth/me``."""
        identity = self.require_identity()
        if identity.user_id:
            return identity.user_id

        claims = decode_token_claims(identity.token)
        for key in ("studentId", "id", "sub"):
            if claims.get(key):
                return str(claims[key])

        user = self._repository.get_current_user()
        student_id = user.get("id") or user.get("studentId")
        if not student_id:
            raise StudentIdentityError(
                "Unable to identify current student. Please try logging in again."
            )
        return str(student_id)

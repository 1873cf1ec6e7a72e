"""
Authentication delegated to the hosted auth provider (Supabase Auth).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Sign-up or sign-in rejected by the provider."""


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "metadata": self.metadata}


@dataclass
class AuthSession:
    user: AuthUser
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class AuthVerifier(Protocol):
    def verify(self, token: str) -> Optional[AuthUser]:
        """Return the user for a bearer token, or None if invalid/expired."""
        ...

    def sign_up(self, email: str, password: str, metadata: dict) -> AuthSession:
        ...

    def sign_in(self, email: str, password: str) -> AuthSession:
        ...


class InMemoryAuthVerifier:
    """Token table for tests and local development."""

    def __init__(self):
        self.users: Dict[str, tuple[AuthUser, str]] = {}
        self.tokens: Dict[str, AuthUser] = {}

    def issue_token(self, user: AuthUser) -> str:
        token = uuid.uuid4().hex
        self.tokens[token] = user
        return token

    def verify(self, token: str) -> Optional[AuthUser]:
        return self.tokens.get(token)

    def sign_up(self, email: str, password: str, metadata: dict) -> AuthSession:
        if email in self.users:
            raise AuthError("User already registered")
        user = AuthUser(id=uuid.uuid4().hex, email=email, metadata=dict(metadata))
        self.users[email] = (user, password)
        return AuthSession(user=user, access_token=self.issue_token(user))

    def sign_in(self, email: str, password: str) -> AuthSession:
        entry = self.users.get(email)
        if not entry or entry[1] != password:
            raise AuthError("Invalid login credentials")
        return AuthSession(user=entry[0], access_token=self.issue_token(entry[0]))


def _to_auth_user(user) -> AuthUser:
    return AuthUser(
        id=str(user.id),
        email=getattr(user, "email", None),
        metadata=dict(getattr(user, "user_metadata", None) or {}),
    )


def _to_session(response) -> AuthSession:
    session = response.session
    return AuthSession(
        user=_to_auth_user(response.user),
        access_token=session.access_token if session else None,
        refresh_token=session.refresh_token if session else None,
        expires_in=session.expires_in if session else None,
    )


class SupabaseAuthVerifier:
    """Wraps a supabase-py client's auth namespace."""

    def __init__(self, client):
        self.client = client

    def verify(self, token: str) -> Optional[AuthUser]:
        try:
            response = self.client.auth.get_user(token)
        except Exception as e:
            # Expired and malformed tokens surface as provider errors.
            logger.info("Token rejected by auth provider: %s", e)
            return None
        if not response or not response.user:
            return None
        return _to_auth_user(response.user)

    def sign_up(self, email: str, password: str, metadata: dict) -> AuthSession:
        try:
            response = self.client.auth.sign_up(
                {"email": email, "password": password, "options": {"data": metadata}}
            )
        except Exception as e:
            raise AuthError(str(e)) from e
        if not response.user:
            raise AuthError("Sign-up returned no user")
        return _to_session(response)

    def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            response = self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            raise AuthError(str(e)) from e
        return _to_session(response)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


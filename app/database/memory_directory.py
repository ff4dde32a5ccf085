"""In-memory identity provider for local development and tests.

Passwords are stored as salted PBKDF2 digests and sessions are opaque
random bearer tokens; this is not a replacement for Supabase Auth.
"""

from __future__ import annotations

import hashlib
import os
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from secrets import compare_digest, token_urlsafe
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from app.core.errors import AuthenticationError, ConflictError
from app.database.base import AuthSession, Principal, PrincipalDirectory

MIN_PASSWORD_LENGTH = 6
SESSION_TTL_SECONDS = 3600
_PBKDF2_ITERATIONS = 100_000


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ITERATIONS)


@dataclass
class _Account:
    principal: Principal
    salt: bytes
    password_hash: bytes


@dataclass(frozen=True)
class PasswordResetRequest:
    email: str
    redirect_to: str
    requested_at: datetime


class InMemoryPrincipalDirectory(PrincipalDirectory):
    def __init__(self, auto_confirm_email: bool = True) -> None:
        self._auto_confirm_email = auto_confirm_email
        self._lock = threading.Lock()
        self._accounts: Dict[str, _Account] = {}
        self._ids_by_email: Dict[str, str] = {}
        self._sessions: Dict[str, Tuple[str, float]] = {}
        self.password_reset_outbox: List[PasswordResetRequest] = []

    def _check_password(self, password: str) -> None:
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthenticationError(
                "weak password",
                public_message=f"Password should be at least {MIN_PASSWORD_LENGTH} characters.",
            )

    def _open_session(self, principal: Principal) -> AuthSession:
        token = token_urlsafe(32)
        expires_at = time.time() + SESSION_TTL_SECONDS
        self._sessions[token] = (principal.id, expires_at)
        return AuthSession(
            access_token=token,
            principal=principal,
            refresh_token=token_urlsafe(32),
            expires_at=int(expires_at),
        )

    def _principal_for_token(self, access_token: str) -> Principal:
        entry = self._sessions.get(access_token or "")
        if entry is None or entry[1] < time.time():
            self._sessions.pop(access_token or "", None)
            raise AuthenticationError("invalid or expired token", public_message="Invalid or expired token")
        return self._accounts[entry[0]].principal

    def sign_up(
        self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None
    ) -> Tuple[Principal, Optional[AuthSession]]:
        self._check_password(password)
        with self._lock:
            if email in self._ids_by_email:
                raise ConflictError("User already registered", public_message="User already exists")
            now = datetime.now(timezone.utc)
            principal = Principal(
                id=str(uuid4()),
                email=email,
                email_confirmed_at=now if self._auto_confirm_email else None,
                user_metadata=dict(metadata or {}),
                created_at=now,
            )
            salt = os.urandom(16)
            self._accounts[principal.id] = _Account(principal, salt, _hash_password(password, salt))
            self._ids_by_email[email] = principal.id
            session = self._open_session(principal) if self._auto_confirm_email else None
            return principal, session

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        with self._lock:
            account = self._accounts.get(self._ids_by_email.get(email, ""))
            if account is None or not compare_digest(
                account.password_hash, _hash_password(password or "", account.salt)
            ):
                raise AuthenticationError("Invalid login credentials")
            if not account.principal.email_confirmed:
                raise AuthenticationError("Email not confirmed", public_message="Email not confirmed")
            return self._open_session(account.principal)

    def sign_out(self, access_token: str) -> None:
        with self._lock:
            principal = self._principal_for_token(access_token)
            # Global scope: every session of this principal ends.
            for token, (principal_id, _) in list(self._sessions.items()):
                if principal_id == principal.id:
                    del self._sessions[token]

    def get_user(self, access_token: str) -> Principal:
        with self._lock:
            return self._principal_for_token(access_token)

    def get_principal(self, principal_id: str) -> Optional[Principal]:
        with self._lock:
            account = self._accounts.get(principal_id)
            return account.principal if account else None

    def list_principals(self) -> List[Principal]:
        with self._lock:
            return [account.principal for account in self._accounts.values()]

    def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        with self._lock:
            if email in self._ids_by_email:
                self.password_reset_outbox.append(
                    PasswordResetRequest(email=email, redirect_to=redirect_to, requested_at=datetime.now(timezone.utc))
                )

    def update_password(self, access_token: str, new_password: str) -> Principal:
        self._check_password(new_password)
        with self._lock:
            principal = self._principal_for_token(access_token)
            account = self._accounts[principal.id]
            account.salt = os.urandom(16)
            account.password_hash = _hash_password(new_password, account.salt)
            return principal

    def confirm_email(self, principal_id: str) -> Principal:
        """Mark the principal's email as confirmed (the provider's confirmation link)."""
        with self._lock:
            account = self._accounts[principal_id]
            account.principal = replace(account.principal, email_confirmed_at=datetime.now(timezone.utc))
            return account.principal

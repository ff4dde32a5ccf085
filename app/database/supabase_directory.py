"""Supabase Auth as the principal directory.

Provider errors are classified by message, the way the auth endpoints
have always reported them (``Invalid login credentials``, ``User already
registered``, ``Database error granting user``...).
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from app.core.errors import (
    AppError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    TransientStoreError,
)
from app.database.base import AuthSession, Principal, PrincipalDirectory
from app.database.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

_LIST_USERS_PAGE_SIZE = 1000


def _translate_auth_error(e: Exception) -> AppError:
    if isinstance(e, AppError):
        return e
    message = str(e)
    lowered = message.lower()
    if "already registered" in lowered or "already exists" in lowered:
        return ConflictError(message, public_message="User already exists")
    if "invalid login credentials" in lowered or "credentials" in lowered:
        return AuthenticationError(message)
    if "email not confirmed" in lowered:
        return AuthenticationError(message, public_message="Email not confirmed")
    if "password should be" in lowered or "weak password" in lowered:
        return AuthenticationError(message, public_message=message)
    if "jwt" in lowered or "expired" in lowered or "invalid" in lowered or "session" in lowered:
        return AuthenticationError(message, public_message="Invalid or expired token")
    if "not found" in lowered:
        return NotFoundError(message)
    return TransientStoreError(message)


def _to_principal(user) -> Principal:
    return Principal(
        id=str(user.id),
        email=user.email or "",
        email_confirmed_at=getattr(user, "email_confirmed_at", None),
        user_metadata=dict(getattr(user, "user_metadata", None) or {}),
        created_at=getattr(user, "created_at", None),
    )


def _to_session(session, principal: Principal) -> AuthSession:
    return AuthSession(
        access_token=session.access_token,
        principal=principal,
        refresh_token=getattr(session, "refresh_token", None),
        expires_at=getattr(session, "expires_at", None),
    )


class SupabasePrincipalDirectory(PrincipalDirectory):
    def __init__(self, handle: SupabaseClient):
        self.handle = handle

    def sign_up(
        self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None
    ) -> Tuple[Principal, Optional[AuthSession]]:
        try:
            response = self.handle.new_anon_client().auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": metadata or {}},
            })
        except Exception as e:
            raise _translate_auth_error(e) from e
        if not response.user:
            raise TransientStoreError("sign_up returned no user")
        if getattr(response.user, "identities", None) == []:
            # Existing, unconfirmed email: the provider answers with an obfuscated user
            raise ConflictError("User already registered", public_message="User already exists")
        principal = _to_principal(response.user)
        session = _to_session(response.session, principal) if response.session else None
        return principal, session

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            response = self.handle.new_anon_client().auth.sign_in_with_password({
                "email": email,
                "password": password,
            })
        except Exception as e:
            raise _translate_auth_error(e) from e
        if not response.user or not response.session:
            raise AuthenticationError("sign_in returned no session")
        return _to_session(response.session, _to_principal(response.user))

    def sign_out(self, access_token: str) -> None:
        try:
            self.handle.get_service_client().auth.admin.sign_out(access_token)
        except Exception as e:
            raise _translate_auth_error(e) from e

    def get_user(self, access_token: str) -> Principal:
        try:
            response = self.handle.get_client().auth.get_user(access_token)
        except Exception as e:
            raise _translate_auth_error(e) from e
        if not response or not response.user:
            raise AuthenticationError("no user for token", public_message="Invalid or expired token")
        return _to_principal(response.user)

    def get_principal(self, principal_id: str) -> Optional[Principal]:
        try:
            response = self.handle.get_service_client().auth.admin.get_user_by_id(principal_id)
        except Exception as e:
            error = _translate_auth_error(e)
            if isinstance(error, (NotFoundError, AuthenticationError)):
                return None
            raise error from e
        if not response or not response.user:
            return None
        return _to_principal(response.user)

    def list_principals(self) -> List[Principal]:
        principals: List[Principal] = []
        page = 1
        try:
            while True:
                users = self.handle.get_service_client().auth.admin.list_users(
                    page=page, per_page=_LIST_USERS_PAGE_SIZE
                )
                principals.extend(_to_principal(user) for user in users)
                if len(users) < _LIST_USERS_PAGE_SIZE:
                    return principals
                page += 1
        except Exception as e:
            raise _translate_auth_error(e) from e

    def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        try:
            self.handle.new_anon_client().auth.reset_password_for_email(email, {"redirect_to": redirect_to})
        except Exception as e:
            raise _translate_auth_error(e) from e

    def update_password(self, access_token: str, new_password: str) -> Principal:
        principal = self.get_user(access_token)
        try:
            response = self.handle.get_service_client().auth.admin.update_user_by_id(
                principal.id, {"password": new_password}
            )
        except Exception as e:
            raise _translate_auth_error(e) from e
        return _to_principal(response.user) if response and response.user else principal

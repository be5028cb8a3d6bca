"""
Authentication backends: Firebase Auth and an in-memory test implementation.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Protocol

import requests
from firebase_admin import auth as firebase_auth

from imob_api.errors import AuthenticationError, ConflictError, ImobError, NotFoundError

logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"


@dataclass
class AuthUser:
    uid: str
    email: str = ""
    display_name: str = ""
    phone_number: Optional[str] = None
    email_verified: bool = False
    disabled: bool = False
    custom_claims: dict = field(default_factory=dict)
    created_at: Optional[float] = None


class AuthClient(Protocol):
    """Identity operations the API needs from the auth provider."""

    def verify_id_token(self, id_token: str) -> dict:
        ...

    def verify_password(self, email: str, password: str) -> str:
        """Checks email and password; returns the uid or raises AuthenticationError."""
        ...

    def create_user(
        self,
        *,
        email: str,
        password: str,
        display_name: str = "",
        phone_number: Optional[str] = None,
        email_verified: bool = False,
    ) -> AuthUser:
        ...

    def delete_user(self, uid: str) -> None:
        ...

    def get_user(self, uid: str) -> Optional[AuthUser]:
        ...

    def get_user_by_email(self, email: str) -> Optional[AuthUser]:
        ...

    def set_custom_user_claims(self, uid: str, claims: dict) -> None:
        ...

    def create_custom_token(self, uid: str, claims: Optional[dict] = None) -> str:
        ...

    def list_users(self) -> Iterator[AuthUser]:
        ...


def _from_record(record) -> AuthUser:
    metadata = getattr(record, "user_metadata", None)
    return AuthUser(
        uid=record.uid,
        email=record.email or "",
        display_name=record.display_name or "",
        phone_number=record.phone_number,
        email_verified=bool(record.email_verified),
        disabled=bool(record.disabled),
        custom_claims=dict(record.custom_claims or {}),
        created_at=getattr(metadata, "creation_timestamp", None),
    )


class FirebaseAuthClient:
    """Wraps firebase_admin.auth and maps its errors onto API errors."""

    def __init__(self, app=None, web_api_key: Optional[str] = None, timeout: float = 10):
        self.app = app
        self.web_api_key = web_api_key
        self.timeout = timeout

    def verify_id_token(self, id_token: str) -> dict:
        try:
            return firebase_auth.verify_id_token(id_token, app=self.app)
        except (firebase_auth.InvalidIdTokenError, ValueError) as exc:
            raise AuthenticationError("invalid or expired token") from exc

    def verify_password(self, email: str, password: str) -> str:
        if not self.web_api_key:
            raise ImobError("password sign-in is not configured")
        try:
            response = requests.post(
                SIGN_IN_URL,
                params={"key": self.web_api_key},
                json={"email": email, "password": password, "returnSecureToken": True},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Password sign-in request failed: %s", exc)
            raise ImobError("authentication service unavailable") from exc
        if not response.ok:
            raise AuthenticationError("Invalid credentials")
        return response.json()["localId"]

    def create_user(
        self,
        *,
        email: str,
        password: str,
        display_name: str = "",
        phone_number: Optional[str] = None,
        email_verified: bool = False,
    ) -> AuthUser:
        kwargs = {
            "email": email,
            "password": password,
            "email_verified": email_verified,
            "app": self.app,
        }
        if display_name:
            kwargs["display_name"] = display_name
        if phone_number:
            kwargs["phone_number"] = phone_number
        try:
            record = firebase_auth.create_user(**kwargs)
        except (
            firebase_auth.EmailAlreadyExistsError,
            firebase_auth.PhoneNumberAlreadyExistsError,
        ) as exc:
            raise ConflictError("email already registered") from exc
        return _from_record(record)

    def delete_user(self, uid: str) -> None:
        try:
            firebase_auth.delete_user(uid, app=self.app)
        except firebase_auth.UserNotFoundError as exc:
            raise NotFoundError("user not found") from exc

    def get_user(self, uid: str) -> Optional[AuthUser]:
        try:
            return _from_record(firebase_auth.get_user(uid, app=self.app))
        except firebase_auth.UserNotFoundError:
            return None

    def get_user_by_email(self, email: str) -> Optional[AuthUser]:
        try:
            return _from_record(firebase_auth.get_user_by_email(email, app=self.app))
        except firebase_auth.UserNotFoundError:
            return None

    def set_custom_user_claims(self, uid: str, claims: dict) -> None:
        firebase_auth.set_custom_user_claims(uid, claims, app=self.app)

    def create_custom_token(self, uid: str, claims: Optional[dict] = None) -> str:
        token = firebase_auth.create_custom_token(uid, claims, app=self.app)
        return token.decode("utf-8") if isinstance(token, bytes) else token

    def list_users(self) -> Iterator[AuthUser]:
        for record in firebase_auth.list_users(app=self.app).iterate_all():
            yield _from_record(record)


class InMemoryAuthClient:
    """Auth double. `issue_id_token` plays the role of the client SDK sign-in."""

    def __init__(self):
        self.users: Dict[str, AuthUser] = {}
        self.passwords: Dict[str, str] = {}
        self.id_tokens: Dict[str, str] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.passwords.clear()
        self.id_tokens.clear()

    def issue_id_token(self, uid: str) -> str:
        token = f"id-token-{secrets.token_hex(8)}"
        self.id_tokens[token] = uid
        return token

    def verify_id_token(self, id_token: str) -> dict:
        uid = self.id_tokens.get(id_token)
        user = self.users.get(uid) if uid else None
        if not user or user.disabled:
            raise AuthenticationError("invalid or expired token")
        claims = {"uid": user.uid, "email": user.email}
        claims.update(user.custom_claims)
        return claims

    def verify_password(self, email: str, password: str) -> str:
        user = self.get_user_by_email(email)
        if not user or user.disabled or self.passwords.get(user.uid) != password:
            raise AuthenticationError("Invalid credentials")
        return user.uid

    def create_user(
        self,
        *,
        email: str,
        password: str,
        display_name: str = "",
        phone_number: Optional[str] = None,
        email_verified: bool = False,
    ) -> AuthUser:
        if self.get_user_by_email(email):
            raise ConflictError("email already registered")
        uid = secrets.token_hex(14)
        user = AuthUser(
            uid=uid,
            email=email,
            display_name=display_name,
            phone_number=phone_number,
            email_verified=email_verified,
            created_at=time.time() * 1000,
        )
        self.users[uid] = user
        self.passwords[uid] = password
        return user

    def delete_user(self, uid: str) -> None:
        if uid not in self.users:
            raise NotFoundError("user not found")
        del self.users[uid]
        self.passwords.pop(uid, None)

    def get_user(self, uid: str) -> Optional[AuthUser]:
        return self.users.get(uid)

    def get_user_by_email(self, email: str) -> Optional[AuthUser]:
        wanted = (email or "").lower()
        for user in self.users.values():
            if user.email.lower() == wanted:
                return user
        return None

    def set_custom_user_claims(self, uid: str, claims: dict) -> None:
        user = self.users.get(uid)
        if not user:
            raise NotFoundError("user not found")
        user.custom_claims = dict(claims or {})

    def create_custom_token(self, uid: str, claims: Optional[dict] = None) -> str:
        return f"custom-token-{uid}"

    def list_users(self) -> Iterator[AuthUser]:
        yield from list(self.users.values())

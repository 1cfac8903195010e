# src/services/auth.py

"""Sign-in, sign-up and session-change notification."""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlencode

from passlib.context import CryptContext

from src.config.settings import Settings
from src.models.user import User
from src.storage.record_store import StoreError
from src.storage.rest_store import RestRecordStore
from src.storage.sqlite_store import SQLiteRecordStore

logger = logging.getLogger("price_tracker.auth")

SessionListener = Callable[[User | None], Awaitable[None] | None]

_MIN_PASSWORD_LENGTH = 6


class AuthError(Exception):
    """Raised when credentials are rejected or the auth call fails."""


def _check_credentials(email: str, password: str) -> str:
    """Basic form checks shared by both backends; returns the email."""
    cleaned = email.strip()
    if not cleaned or "@" not in cleaned:
        raise AuthError("Please enter a valid email address")
    if len(password) < _MIN_PASSWORD_LENGTH:
        raise AuthError(
            f"Password must be at least {_MIN_PASSWORD_LENGTH} characters"
        )
    return cleaned


class AuthBackend(ABC):
    """Blocking account operations behind :class:`AuthService`."""

    @abstractmethod
    def sign_up(self, email: str, password: str) -> User:
        """Create an account and return it signed in."""

    @abstractmethod
    def sign_in(self, email: str, password: str) -> User:
        """Verify credentials and return the account."""

    @abstractmethod
    def sign_out(self) -> None:
        """End the backend session."""


class LocalAuthBackend(AuthBackend):
    """Accounts stored next to the records in the SQLite store."""

    def __init__(self, store: SQLiteRecordStore) -> None:
        self._store = store
        self._hasher = CryptContext(
            schemes=["pbkdf2_sha256"], deprecated="auto",
        )

    def sign_up(self, email: str, password: str) -> User:
        email = _check_credentials(email, password)
        if self._store.find_user(email) is not None:
            raise AuthError("An account with this email already exists")
        try:
            row = self._store.create_user(
                email, self._hasher.hash(password),
            )
        except StoreError as exc:
            raise AuthError("Failed to create account") from exc
        logger.info("Created local account %s", row["id"])
        return User(id=row["id"], email=row["email"])

    def sign_in(self, email: str, password: str) -> User:
        row = self._store.find_user(email.strip())
        if row is None or not self._hasher.verify(
            password, row["password_hash"],
        ):
            raise AuthError("Invalid email or password")
        return User(id=row["id"], email=row["email"])

    def sign_out(self) -> None:
        """Nothing to revoke for local accounts."""


class RestAuthBackend(AuthBackend):
    """GoTrue-style auth for the hosted backend.

    A successful sign-in hands its access token to the paired
    :class:`RestRecordStore` so row-level security sees the user.
    """

    def __init__(self, store: RestRecordStore) -> None:
        self._store = store

    def _post(
        self,
        path: str,
        body: dict[str, Any] | None = None,
        query: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._store.base_url}/auth/v1/{path}"
        if query:
            url = f"{url}?{urlencode(query)}"
        headers = {
            "apikey": self._store.api_key,
            "Content-Type": "application/json",
        }
        if self._store.access_token:
            headers["Authorization"] = f"Bearer {self._store.access_token}"
        try:
            resp = self._store.session.post(
                url, headers=headers, json=body or {},
                timeout=Settings.REQUEST_TIMEOUT,
            )
        except Exception as exc:
            logger.error("Auth request %s failed", path, exc_info=True)
            raise AuthError("Could not reach the server") from exc

        payload: dict[str, Any] = {}
        if resp.text.strip():
            try:
                payload = resp.json()
            except ValueError:
                payload = {}
        if resp.status_code >= 400:
            message = (
                payload.get("error_description")
                or payload.get("msg")
                or payload.get("message")
                or f"HTTP {resp.status_code}"
            )
            raise AuthError(str(message))
        return payload

    def _accept_session(self, payload: dict[str, Any]) -> User:
        """Store the access token and extract the user."""
        user_data = payload.get("user") or payload
        if not user_data.get("id"):
            raise AuthError("Unexpected response from the server")
        token = payload.get("access_token")
        if token:
            self._store.access_token = str(token)
        return User(
            id=str(user_data["id"]),
            email=str(user_data.get("email", "")),
        )

    def sign_up(self, email: str, password: str) -> User:
        email = _check_credentials(email, password)
        payload = self._post(
            "signup", {"email": email, "password": password},
        )
        return self._accept_session(payload)

    def sign_in(self, email: str, password: str) -> User:
        payload = self._post(
            "token",
            {"email": email.strip(), "password": password},
            query={"grant_type": "password"},
        )
        return self._accept_session(payload)

    def sign_out(self) -> None:
        try:
            if self._store.access_token:
                self._post("logout")
        finally:
            self._store.access_token = None


class AuthService:
    """Holds the signed-in user and tells subscribers when it changes."""

    def __init__(self, backend: AuthBackend) -> None:
        self._backend = backend
        self._user: User | None = None
        self._listeners: list[SessionListener] = []

    @property
    def user(self) -> User | None:
        return self._user

    def subscribe(self, listener: SessionListener) -> None:
        """Register a callback run with the new user on every change."""
        self._listeners.append(listener)

    async def _set_user(self, user: User | None) -> None:
        self._user = user
        for listener in list(self._listeners):
            result = listener(user)
            if inspect.isawaitable(result):
                await result

    async def sign_up(self, email: str, password: str) -> User:
        user = await asyncio.to_thread(
            self._backend.sign_up, email, password,
        )
        logger.info("Signed up %s", user.email)
        await self._set_user(user)
        return user

    async def sign_in(self, email: str, password: str) -> User:
        user = await asyncio.to_thread(
            self._backend.sign_in, email, password,
        )
        logger.info("Signed in %s", user.email)
        await self._set_user(user)
        return user

    async def sign_out(self) -> None:
        if self._user is None:
            return
        try:
            await asyncio.to_thread(self._backend.sign_out)
        except AuthError:
            logger.warning("Remote sign-out failed", exc_info=True)
        logger.info("Signed out %s", self._user.email)
        await self._set_user(None)

# session.py
from __future__ import annotations

import hashlib
import hmac
import logging
import os
import secrets
import threading
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import yaml  # type: ignore[import-untyped]

from db_singleton import PgDB
from errors import AuthError, BackendError
from mvc_observer import Subject
from validators import Validator as V

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

PBKDF2_ITERATIONS = 200_000


@dataclass(frozen=True, slots=True)
class User:
    id: int
    email: str


class AuthBackend(Protocol):
    def authenticate(self, email: str, password: str) -> User: ...

    def create_user(self, email: str, password: str) -> User: ...


class SessionState(Subject):
    """
    Explicit session object: sign_in / sign_out change the state and
    notify observers with SIGNED_IN (payload: User) or SIGNED_OUT
    (payload: the user that left, or None).
    """

    def __init__(self, auth: AuthBackend) -> None:
        super().__init__()
        self._auth = auth
        self._user: Optional[User] = None

    @property
    def current_user(self) -> Optional[User]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def sign_in(self, email: str, password: str) -> User:
        user = self._auth.authenticate((email or "").strip().lower(), password or "")
        self._user = user
        logger.info("signed in %s", user.email)
        self.notify(SIGNED_IN, user)
        return user

    def sign_out(self) -> None:
        user, self._user = self._user, None
        if user is not None:
            logger.info("signed out %s", user.email)
        self.notify(SIGNED_OUT, user)


# ===== credential backends =====

class PgAuthBackend:
    """auth_users table; passwords hashed by pgcrypto crypt() with a bcrypt salt."""

    def authenticate(self, email: str, password: str) -> User:
        row = PgDB.get().fetch_one(
            "SELECT id, email FROM auth_users "
            "WHERE email = %s AND password_hash = crypt(%s, password_hash)",
            [email, password],
        )
        if not row:
            raise AuthError("Invalid email or password.")
        return User(id=int(row["id"]), email=row["email"])

    def create_user(self, email: str, password: str) -> User:
        email = V.email(email).lower()
        if len(password or "") < 6:
            raise ValueError("Password must be at least 6 characters.")
        row = PgDB.get().execute_returning(
            "INSERT INTO auth_users (email, password_hash) "
            "VALUES (%s, crypt(%s, gen_salt('bf'))) RETURNING id, email",
            [email, password],
        )
        if row is None:
            raise BackendError("insert into auth_users returned no row", table="auth_users")
        logger.info("created user %s", email)
        return User(id=int(row["id"]), email=row["email"])


def _hash_password(password: str, salt: bytes, iterations: int) -> str:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations).hex()


class YamlAuthBackend:
    """users.yaml in the data directory: email, salt, PBKDF2-SHA256 hash."""

    def __init__(self, data_dir: str, *, iterations: int = PBKDF2_ITERATIONS) -> None:
        self.path = os.path.join(data_dir, "users.yaml")
        self.iterations = iterations
        self._lock = threading.Lock()
        os.makedirs(data_dir, exist_ok=True)

    def _load(self) -> list[dict[str, Any]]:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            return []
        return data if isinstance(data, list) else []

    def _save(self, users: list[dict[str, Any]]) -> None:
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            yaml.safe_dump(users, f, allow_unicode=True, sort_keys=False)
        os.replace(tmp, self.path)

    def authenticate(self, email: str, password: str) -> User:
        for u in self._load():
            if u.get("email") != email:
                continue
            salt = bytes.fromhex(str(u.get("salt", "")))
            iterations = int(u.get("iterations") or self.iterations)
            if hmac.compare_digest(_hash_password(password, salt, iterations),
                                   str(u.get("password_hash", ""))):
                return User(id=int(u["id"]), email=email)
            break
        raise AuthError("Invalid email or password.")

    def create_user(self, email: str, password: str) -> User:
        email = V.email(email).lower()
        if len(password or "") < 6:
            raise ValueError("Password must be at least 6 characters.")
        with self._lock:
            users = self._load()
            if any(u.get("email") == email for u in users):
                raise ValueError(f"User {email} already exists.")
            salt = secrets.token_bytes(16)
            user_id = max((int(u["id"]) for u in users), default=0) + 1
            users.append({
                "id": user_id,
                "email": email,
                "salt": salt.hex(),
                "iterations": self.iterations,
                "password_hash": _hash_password(password, salt, self.iterations),
            })
            self._save(users)
        logger.info("created user %s", email)
        return User(id=user_id, email=email)


class SessionRegistry:
    """Browser session id (cookie) -> SessionState."""

    def __init__(self, auth: AuthBackend) -> None:
        self._auth = auth
        self._sessions: dict[str, SessionState] = {}
        self._lock = threading.Lock()

    def get(self, sid: Optional[str]) -> Optional[SessionState]:
        if not sid:
            return None
        with self._lock:
            return self._sessions.get(sid)

    def open(self) -> tuple[str, SessionState]:
        sid = secrets.token_urlsafe(24)
        state = SessionState(self._auth)
        with self._lock:
            self._sessions[sid] = state
        return sid, state

    def close(self, sid: Optional[str]) -> None:
        with self._lock:
            state = self._sessions.pop(sid or "", None)
        if state is not None:
            state.sign_out()

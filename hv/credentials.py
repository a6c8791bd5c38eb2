"""Credential store: registration, login/logout and the authentication gate.

Usernames are matched case-insensitively (SQLite NOCASE) but stored with the
casing given at registration. Passwords are hashed with Argon2id; session
tokens live in the user's SessionTokenLedger.
"""

from __future__ import annotations

import hmac
import re
from dataclasses import dataclass
from typing import Optional

from argon2.low_level import Type, hash_secret_raw
from sqlmodel import Session, col, select

from .errors import (
    DisallowedPassword,
    DisallowedUsername,
    ExistentUser,
    InexistentUser,
    InvalidPassword,
    InvalidToken,
)
from .logging_config import get_logger
from .models import User
from .sessions import (
    MAX_TOKENS_PER_USER,
    SALT_BYTES,
    SessionTokenLedger,
    UnknownToken,
    b64encode,
    random_string,
)

logger = get_logger(__name__)

# Argon2id parameters. Changing them invalidates every stored password hash.
PASSWORD_TIME_COST = 3
PASSWORD_MEMORY_COST = 64 * 1024  # KiB
PASSWORD_PARALLELISM = 4
PASSWORD_HASH_LEN = 32

_USERNAME_RE = re.compile(r"[A-Za-z0-9._-]+")

# Hashed against when the user doesn't exist, so both login failures cost the same.
_DUMMY_SALT = "A" * 24


def hash_password(password: str, salt: str) -> str:
    digest = hash_secret_raw(
        secret=password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        time_cost=PASSWORD_TIME_COST,
        memory_cost=PASSWORD_MEMORY_COST,
        parallelism=PASSWORD_PARALLELISM,
        hash_len=PASSWORD_HASH_LEN,
        type=Type.ID,
    )
    return b64encode(digest)


def is_username_valid(username: str) -> bool:
    return _USERNAME_RE.fullmatch(username) is not None


def is_password_valid(password: str) -> bool:
    return len(password) > 0


@dataclass(frozen=True)
class AuthContext:
    """Proof that a request carried valid credentials for user_id."""

    user_id: int
    username: str


class CredentialStore:
    """User credential operations on one session (one transaction).

    Mutating calls (register, login, logout) must run in a write scope so the
    read-modify-write of the token ledger holds the database write lock.
    """

    def __init__(self, session: Session, max_tokens_per_user: int = MAX_TOKENS_PER_USER):
        self.session = session
        self.max_tokens_per_user = max_tokens_per_user

    def _find_user(self, username: str) -> Optional[User]:
        statement = select(User).where(col(User.username).collate("NOCASE") == username)
        return self.session.exec(statement).first()

    def _ledger(self, user: User) -> SessionTokenLedger:
        return SessionTokenLedger.from_pairs(user.session_tokens, self.max_tokens_per_user)

    def register_user(self, username: str, password: str) -> User:
        if not is_username_valid(username):
            raise DisallowedUsername()
        if not is_password_valid(password):
            raise DisallowedPassword()
        if self._find_user(username) is not None:
            raise ExistentUser()

        salt = random_string(SALT_BYTES)
        user = User(
            username=username,
            password_hash=hash_password(password, salt),
            password_salt=salt,
            session_tokens=[],
        )
        self.session.add(user)
        self.session.flush()
        logger.info(f"Registered user {username!r} (id {user.id})")
        return user

    def login_user(self, username: str, password: str) -> str:
        """Check the password and return a freshly minted session token."""
        user = self._find_user(username)
        if user is None:
            hash_password(password, _DUMMY_SALT)
            raise InexistentUser()

        computed = hash_password(password, user.password_salt)
        if not hmac.compare_digest(computed, user.password_hash):
            raise InvalidPassword()

        ledger, token = self._ledger(user).append_new()
        user.session_tokens = ledger.to_pairs()
        self.session.add(user)
        self.session.flush()
        logger.debug(f"User {user.username!r} logged in ({len(ledger)} live sessions)")
        return token

    def logout_user(self, username: str, token: str) -> None:
        user = self._find_user(username)
        if user is None:
            raise InexistentUser()

        try:
            ledger = self._ledger(user).remove_token(token)
        except UnknownToken:
            raise InvalidToken() from None

        user.session_tokens = ledger.to_pairs()
        self.session.add(user)
        self.session.flush()
        logger.debug(f"User {user.username!r} logged out")

    def authenticate_user(self, username: str, token: str) -> AuthContext:
        """The gate in front of every authenticated operation."""
        user = self._find_user(username)
        if user is None:
            raise InexistentUser()
        if not self._ledger(user).has_token(token):
            raise InvalidToken()
        return AuthContext(user_id=user.id, username=user.username)

    def is_auth_data_valid(self, username: str, token: str) -> bool:
        try:
            self.authenticate_user(username, token)
        except (InexistentUser, InvalidToken):
            return False
        return True

"""Session token ledger: the set of live login sessions of one user.

A session token is a random bearer string handed to the client once at login.
Only a salted SHA-256 of it is kept, so a stolen database can't be replayed
as sessions. The ledger is a bounded FIFO queue: once it holds `capacity`
entries, every new login evicts the oldest one, whether or not it is still
in use.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
from dataclasses import dataclass
from typing import List, NamedTuple, Sequence, Tuple

SESSION_TOKEN_BYTES = 30
SALT_BYTES = 16
MAX_TOKENS_PER_USER = 20


class UnknownToken(Exception):
    """No ledger entry matches the given token."""


class InvalidTokenLedger(ValueError):
    """The stored ledger isn't a list of [hash, salt] pairs."""


def b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii")


def random_string(n_bytes: int) -> str:
    """URL-safe text encoding of n_bytes of secure randomness."""
    return b64encode(secrets.token_bytes(n_bytes))


def hash_token(token: str, salt: str) -> str:
    return b64encode(hashlib.sha256((token + salt).encode("utf-8")).digest())


class SessionTokenEntry(NamedTuple):
    hash: str
    salt: str

    def matches(self, token: str) -> bool:
        return hmac.compare_digest(hash_token(token, self.salt), self.hash)


@dataclass(frozen=True)
class SessionTokenLedger:
    """Immutable, oldest-first sequence of at most `capacity` token entries."""

    entries: Tuple[SessionTokenEntry, ...] = ()
    capacity: int = MAX_TOKENS_PER_USER

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {self.capacity}")

    @classmethod
    def from_pairs(
        cls, pairs: Sequence[Sequence[str]], capacity: int = MAX_TOKENS_PER_USER
    ) -> "SessionTokenLedger":
        entries = []
        for pair in pairs:
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                raise InvalidTokenLedger(f"Invalid session token entry: {pair!r}")
            token_hash, salt = pair
            if not isinstance(token_hash, str) or not isinstance(salt, str):
                raise InvalidTokenLedger(f"Invalid session token entry: {pair!r}")
            entries.append(SessionTokenEntry(token_hash, salt))
        return cls(tuple(entries), capacity)

    def to_pairs(self) -> List[List[str]]:
        return [[entry.hash, entry.salt] for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def append_new(self) -> Tuple["SessionTokenLedger", str]:
        """Mint a token and return (new ledger, raw token).

        When the ledger is full the oldest entries are evicted first so the
        result never holds more than `capacity` entries.
        """
        token = random_string(SESSION_TOKEN_BYTES)
        salt = random_string(SALT_BYTES)

        kept = self.entries
        overflow = len(kept) - self.capacity + 1
        if overflow > 0:
            kept = kept[overflow:]

        entry = SessionTokenEntry(hash_token(token, salt), salt)
        return SessionTokenLedger(kept + (entry,), self.capacity), token

    def remove_token(self, token: str) -> "SessionTokenLedger":
        """Return a ledger without the entry issued for token.

        Raises UnknownToken when no entry matches.
        """
        for index, entry in enumerate(self.entries):
            if entry.matches(token):
                return SessionTokenLedger(
                    self.entries[:index] + self.entries[index + 1:], self.capacity
                )
        raise UnknownToken()

    def has_token(self, token: str) -> bool:
        return any(entry.matches(token) for entry in self.entries)

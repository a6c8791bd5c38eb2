"""SQLModel database models for hv.

Table and column names follow the existing on-disk layout (Users, Doujins,
DoujinPages, TagSets, META) so databases created by earlier releases open
unchanged.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional

from sqlalchemy import Column, ForeignKey, Integer, Table, Text
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel

APP_NAME = "hv"
SCHEMA_VERSION = "v1"


class CorruptColumn(ValueError):
    """A stored array column holds something that isn't a JSON array."""


def encode_array(values: Optional[List[Any]]) -> str:
    """Serialize a list to the compact JSON text stored in array columns."""
    return json.dumps(list(values or []), ensure_ascii=False, separators=(",", ":"))


def decode_array(raw: Optional[str]) -> List[Any]:
    """Parse an array column. Empty text and JSON null both mean []."""
    if raw is None or raw == "":
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CorruptColumn(f"Got invalid JSON from database: {raw[:40]!r}") from exc
    if value is None:
        return []
    if not isinstance(value, list):
        raise CorruptColumn(f"Expected a JSON array, got {type(value).__name__}")
    return value


class JSONArray(TypeDecorator):
    """List stored as JSON text (tags, characters, session tokens...)."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return encode_array(value)

    def process_result_value(self, value, dialect):
        return decode_array(value)


def _array_column(name: str) -> Column:
    return Column(name, JSONArray, nullable=False)


# Bootstrap marker. The on-disk layout has no primary key here, so it stays a Core table.
meta_table = Table(
    "META",
    SQLModel.metadata,
    Column("app_name", Text, nullable=False),
    Column("schema_version", Text, nullable=False),
)


class User(SQLModel, table=True):
    __tablename__ = "Users"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(sa_column=Column("username", Text, nullable=False))
    password_hash: str = Field(sa_column=Column("password_hash", Text, nullable=False))
    password_salt: str = Field(sa_column=Column("password_salt", Text, nullable=False))
    # [[hash, salt], ...] oldest first; see sessions.SessionTokenLedger
    session_tokens: List[List[str]] = Field(
        default_factory=list, sa_column=_array_column("session_tokens")
    )


class Doujin(SQLModel, table=True):
    __tablename__ = "Doujins"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(sa_column=Column("title", Text, nullable=False))
    subtitle: str = Field(sa_column=Column("subtitle", Text, nullable=False))
    upload_date: str = Field(sa_column=Column("upload_date", Text, nullable=False))  # RFC 3339
    external_rating: int = Field(sa_column=Column("external_rating", Integer, nullable=False))
    tags: List[str] = Field(default_factory=list, sa_column=_array_column("tags"))
    characters: List[str] = Field(default_factory=list, sa_column=_array_column("characters"))
    artists: List[str] = Field(default_factory=list, sa_column=_array_column("artists"))
    groups: List[str] = Field(default_factory=list, sa_column=_array_column("groups"))
    languages: List[str] = Field(default_factory=list, sa_column=_array_column("languages"))
    pages: int = Field(sa_column=Column("pages", Integer, nullable=False))  # declared count


class DoujinPage(SQLModel, table=True):
    __tablename__ = "DoujinPages"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    doujin_id: int = Field(
        sa_column=Column(
            "doujin_id",
            Integer,
            ForeignKey("Doujins.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    page_path: str = Field(sa_column=Column("page_path", Text, nullable=False))
    page_number: int = Field(sa_column=Column("page_number", Integer, nullable=False))


class TagSet(SQLModel, table=True):
    __tablename__ = "TagSets"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(
        sa_column=Column(
            "user_id",
            Integer,
            ForeignKey("Users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    tags: List[str] = Field(default_factory=list, sa_column=_array_column("tags"))
    anti_tags: List[str] = Field(default_factory=list, sa_column=_array_column("anti_tags"))

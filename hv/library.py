"""Library facade: the operation set exposed to the request layer.

Each call runs in its own transaction. Authenticated operations resolve the
(username, token) pair into an AuthContext first and only then touch the
catalog. Storage failures are logged with the failing operation and
re-raised as the opaque InternalError.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Sequence, Tuple

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from .config import HVConfig
from .credentials import AuthContext, CredentialStore
from .database import create_db_engine, init_db, session_scope
from .errors import (
    ImportValidationError,
    InternalError,
    InvalidMetadata,
    RegistrationDisabled,
)
from .importer import import_doujin, list_import_folders
from .logging_config import get_logger
from .models import CorruptColumn
from .repository import Repository
from .schemas import DoujinInfo, SearchResult, TagSetInfo
from .sessions import MAX_TOKENS_PER_USER, InvalidTokenLedger

logger = get_logger(__name__)

_STORAGE_ERRORS = (SQLAlchemyError, CorruptColumn, InvalidTokenLedger)


class Library:
    def __init__(
        self,
        engine: Engine,
        max_tokens_per_user: int = MAX_TOKENS_PER_USER,
        disable_registering: bool = False,
    ):
        self.engine = engine
        self.max_tokens_per_user = max_tokens_per_user
        self.disable_registering = disable_registering

    @classmethod
    def open(cls, config: HVConfig) -> "Library":
        """Create the engine for config's database and bootstrap its schema."""
        config.database_path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_db_engine(config.database_path)
        init_db(engine)
        return cls(
            engine,
            max_tokens_per_user=config.max_tokens_per_user,
            disable_registering=config.disable_registering,
        )

    def close(self) -> None:
        self.engine.dispose()

    # --- Transactions ---

    @contextmanager
    def _transaction(self, operation: str, write: bool = False) -> Iterator[Session]:
        try:
            with session_scope(self.engine, write=write) as session:
                yield session
        except _STORAGE_ERRORS as exc:
            logger.error(f"{operation}: storage failure: {exc}", exc_info=True)
            raise InternalError() from exc

    def _credentials(self, session: Session) -> CredentialStore:
        return CredentialStore(session, self.max_tokens_per_user)

    @contextmanager
    def _authenticated(
        self, operation: str, username: str, token: str, write: bool = False
    ) -> Iterator[Tuple[Repository, AuthContext]]:
        with self._transaction(operation, write=write) as session:
            ctx = self._credentials(session).authenticate_user(username, token)
            yield Repository(session), ctx

    # --- Users ---

    def register_user(self, username: str, password: str) -> None:
        """Register unconditionally (operator tooling such as `hv register-user`)."""
        with self._transaction("register_user", write=True) as session:
            self._credentials(session).register_user(username, password)

    def sign_up(self, username: str, password: str) -> None:
        """Self-service registration, refused when disable_registering is set."""
        if self.disable_registering:
            logger.info(f"Refused sign-up for {username!r}: registering is disabled")
            raise RegistrationDisabled()
        self.register_user(username, password)

    def login_user(self, username: str, password: str) -> str:
        with self._transaction("login_user", write=True) as session:
            return self._credentials(session).login_user(username, password)

    def logout_user(self, username: str, token: str) -> None:
        with self._transaction("logout_user", write=True) as session:
            self._credentials(session).logout_user(username, token)

    def is_auth_data_valid(self, username: str, token: str) -> bool:
        with self._transaction("is_auth_data_valid") as session:
            return self._credentials(session).is_auth_data_valid(username, token)

    def authenticate_user(self, username: str, token: str) -> AuthContext:
        with self._transaction("authenticate_user") as session:
            return self._credentials(session).authenticate_user(username, token)

    def get_username(self, username: str, token: str) -> str:
        """Stored spelling of username; the caller's casing may differ."""
        with self._authenticated("get_username", username, token) as (_, ctx):
            return ctx.username

    # --- Doujins ---

    def search_doujins(
        self,
        username: str,
        token: str,
        query: str = "",
        tags: Sequence[str] = (),
        anti_tags: Sequence[str] = (),
        page_size: int = 21,
        page_number: int = 1,
    ) -> SearchResult:
        with self._authenticated("search_doujins", username, token) as (repo, ctx):
            return repo.search_doujins(ctx, query, tags, anti_tags, page_size, page_number)

    def get_doujin(self, username: str, token: str, doujin_id: int) -> DoujinInfo:
        with self._authenticated("get_doujin", username, token) as (repo, ctx):
            return repo.get_doujin(ctx, doujin_id)

    def get_all_tags(self, username: str, token: str) -> List[str]:
        with self._authenticated("get_all_tags", username, token) as (repo, ctx):
            return repo.get_all_tags(ctx)

    def get_page_file_path(self, username: str, token: str, page_id: int) -> str:
        with self._authenticated("get_page_file_path", username, token) as (repo, ctx):
            return repo.get_page_file_path(ctx, page_id)

    # --- Tag sets ---

    def create_tag_set(
        self, username: str, token: str, tags: Sequence[str], anti_tags: Sequence[str]
    ) -> int:
        with self._authenticated("create_tag_set", username, token, write=True) as (repo, ctx):
            return repo.create_tag_set(ctx, tags, anti_tags)

    def delete_tag_set(self, username: str, token: str, tag_set_id: int) -> None:
        with self._authenticated("delete_tag_set", username, token, write=True) as (repo, ctx):
            repo.delete_tag_set(ctx, tag_set_id)

    def change_tag_set(
        self,
        username: str,
        token: str,
        tag_set_id: int,
        tags: Sequence[str],
        anti_tags: Sequence[str],
    ) -> None:
        with self._authenticated("change_tag_set", username, token, write=True) as (repo, ctx):
            repo.change_tag_set(ctx, tag_set_id, tags, anti_tags)

    def get_tag_sets(self, username: str, token: str) -> List[TagSetInfo]:
        with self._authenticated("get_tag_sets", username, token) as (repo, ctx):
            return repo.get_tag_sets(ctx)

    # --- Import (offline tooling) ---

    def import_doujin(self, folder: Path) -> int:
        """Import one folder in a single transaction. Returns the new doujin id."""
        with self._transaction("import_doujin", write=True) as session:
            return import_doujin(session, folder).id

    def import_doujins_from(self, root: Path) -> Dict[str, int]:
        """Import every sub-folder of root, each in its own transaction.

        A rejected folder is logged and skipped; the rest still import.
        """
        stats = {"imported": 0, "failed": 0}
        for folder in list_import_folders(root):
            try:
                self.import_doujin(folder)
            except (InvalidMetadata, ImportValidationError) as exc:
                logger.error(f"✗ {folder.name} - {exc}")
                stats["failed"] += 1
            else:
                stats["imported"] += 1
        return stats

    def __enter__(self) -> "Library":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

"""Shared fixtures: a fresh database per test and helpers to populate it."""

import json
import sqlite3
from pathlib import Path

import pytest

from hv.database import create_db_engine, init_db, session_scope
from hv.library import Library
from hv.models import Doujin, DoujinPage


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "hv.db"


@pytest.fixture
def engine(db_path):
    engine = create_db_engine(db_path)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def library(engine):
    return Library(engine)


@pytest.fixture
def raw_db(db_path, engine):
    """Plain sqlite3 connection for checking what actually landed on disk."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()


@pytest.fixture
def ammie(library):
    """Registered and logged-in user: (username, token)."""
    library.register_user("Ammie", "cats123")
    token = library.login_user("Ammie", "cats123")
    return "Ammie", token


@pytest.fixture
def add_doujin(engine):
    """Insert a doujin straight into the store; returns its id."""

    def _add(
        title="Untitled",
        subtitle="",
        tags=(),
        upload_date="2024-01-01T00:00:00Z",
        page_paths=("/pages/1.png",),
        external_rating=0,
    ):
        with session_scope(engine, write=True) as session:
            doujin = Doujin(
                title=title,
                subtitle=subtitle,
                upload_date=upload_date,
                external_rating=external_rating,
                tags=list(tags),
                characters=[],
                artists=[],
                groups=[],
                languages=["english"],
                pages=len(page_paths),
            )
            session.add(doujin)
            session.flush()
            for number, page_path in enumerate(page_paths, start=1):
                session.add(
                    DoujinPage(doujin_id=doujin.id, page_path=page_path, page_number=number)
                )
            return doujin.id

    return _add


def sample_metadata(pages=3, **overrides):
    metadata = {
        "title": "[AmmieNyami] Yume no Kyouka ~ Fantastical Ecstasy",
        "subtitle": "[AmmieNyami] 夢の狂華 〜 Fantastical Ecstasy",
        "favorite_counts": 69420,
        "upload_date": "1996-08-15T07:00:50-03:00",
        "character": ["Amane Mitsuda", "Touma Hisui"],
        "tag": ["yuri", "romance", "slice of life"],
        "artist": ["AmmieNyami"],
        "group": ["Team Scarlet Reverie"],
        "language": ["english"],
        "pages": pages,
    }
    metadata.update(overrides)
    return metadata


def make_import_folder(folder: Path, page_files, pages=3, **overrides) -> Path:
    """Create an import folder with metadata.json and empty page files."""
    folder.mkdir(parents=True, exist_ok=True)
    (folder / "metadata.json").write_text(
        json.dumps(sample_metadata(pages=pages, **overrides), ensure_ascii=False),
        encoding="utf-8",
    )
    for name in page_files:
        (folder / name).write_bytes(b"\x89PNG")
    return folder

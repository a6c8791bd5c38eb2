"""Doujin import pipeline for hv.

An import folder holds a `metadata.json` and one image per page, named by
page number (`1.png`, `002.jpg`, ...). The doujin row and all its page rows
are written in the caller's transaction and validated before it commits, so
a rejected folder leaves nothing behind.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import (
    AwareDatetime,
    BaseModel,
    Field,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)
from sqlmodel import Session

from .errors import InvalidImportMetadata, MissingPages, NonSequentialPages, TooManyPages
from .logging_config import get_logger
from .models import Doujin, DoujinPage

logger = get_logger(__name__)

METADATA_FILENAME = "metadata.json"
MAX_PAGE_NUMBER = 2**32 - 1

META_FORMAT_HELP = """\
The metadata.json File Format

The metadata.json file must contain the following JSON structure, with none of the
fields being optional:

```
{
    "title": "[AmmieNyami] Yume no Kyouka ~ Fantastical Ecstasy",
    "subtitle": "[AmmieNyami] \\u5922\\u306E\\u72C2\\u83EF\\u3000\\u301C Fantastical Ecstasy",
    "favorite_counts": 69420,
    "upload_date": "1996-08-15T07:00:50-03:00",
    "character": ["Amane Mitsuda", "Touma Hisui"],
    "tag": ["yuri", "romance", "slice of life"],
    "artist": ["AmmieNyami"],
    "group": ["Team Scarlet Reverie"],
    "language": ["english"],
    "pages": 20
}
```

Where:

- `"title"` is the doujin's title;
- `"subtitle"` is the doujin's subtitle;
- `"favorite_counts"` is the rating the doujin received in the external website it
  was downloaded from. It usually represents a number of views, likes, favorites, etc;
- `"upload_date"` is either the date the doujin was uploaded to the external website
  it was downloaded from or the date the doujin was first published or imported. The
  date is in RFC 3339 format;
- `"character"` is an array containing the doujin's main characters;
- `"tag"` is an array containing the doujin's tags;
- `"artist"` is an array containing the names of the artists that worked on the
  doujin;
- `"group"` is an array containing the names of the groups that worked on the doujin;
- `"language"` is an array containing the languages used in the doujin;
- `"pages"` is the number of pages of the doujin.

Keys are matched case-insensitively. Page files are named from 1 to N (the
numbers can be padded with zeroes) and may have any extension."""


class DoujinImportMetadata(BaseModel):
    """Validated content of metadata.json."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    title: StrictStr
    subtitle: StrictStr
    external_rating: StrictInt = Field(alias="favorite_counts")
    upload_date: AwareDatetime
    characters: List[StrictStr] = Field(alias="character")
    tags: List[StrictStr] = Field(alias="tag")
    artists: List[StrictStr] = Field(alias="artist")
    groups: List[StrictStr] = Field(alias="group")
    languages: List[StrictStr] = Field(alias="language")
    pages: StrictInt = Field(ge=1)

    @field_validator("upload_date", mode="before")
    @classmethod
    def _upload_date_is_text(cls, value: Any) -> Any:
        # Numbers would otherwise be read as Unix timestamps
        if not isinstance(value, str):
            raise ValueError("upload_date must be an RFC 3339 string")
        return value


def format_rfc3339(value: datetime) -> str:
    """Second-precision RFC 3339, `Z` for UTC (the stored upload_date format)."""
    stamp = value.replace(microsecond=0).isoformat()
    if value.utcoffset() == timedelta(0):
        stamp = stamp[: -len("+00:00")] + "Z"
    return stamp


def parse_import_metadata(raw: bytes) -> DoujinImportMetadata:
    """Decode and validate metadata.json content.

    Raises InvalidImportMetadata on malformed JSON or missing/invalid fields.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidImportMetadata(f"Failed to decode {METADATA_FILENAME}: {exc}") from exc

    if not isinstance(data, dict):
        raise InvalidImportMetadata(f"{METADATA_FILENAME} must contain a JSON object")

    # Keys are case-insensitive ("Pages" and "pages" are the same field); the last one wins
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        normalized[str(key).lower()] = value

    try:
        return DoujinImportMetadata.model_validate(normalized)
    except ValidationError as exc:
        raise InvalidImportMetadata(f"Invalid {METADATA_FILENAME}: {exc}") from exc


def read_import_metadata(folder: Path) -> DoujinImportMetadata:
    path = folder / METADATA_FILENAME
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise InvalidImportMetadata(f"Failed to open file `{path}`: {exc}") from exc
    return parse_import_metadata(raw)


def page_number_from_name(filename: str) -> Optional[int]:
    """Page number encoded in a file name, ignoring the extension.

    Returns None for names that aren't an unsigned 32-bit decimal number.
    """
    stem, dot, _ = filename.rpartition(".")
    if not dot:
        stem = filename
    if not stem or not (stem.isascii() and stem.isdigit()):
        return None
    number = int(stem)
    if number > MAX_PAGE_NUMBER:
        return None
    return number


def check_page_numbers(page_numbers: Iterable[int], declared: int) -> None:
    """Require page_numbers to be exactly 1..declared."""
    found = sorted(page_numbers)
    if len(found) < declared:
        raise MissingPages(len(found), declared)
    if len(found) > declared:
        raise TooManyPages(len(found), declared)
    for expected, number in enumerate(found, start=1):
        if number != expected:
            raise NonSequentialPages(expected, number)


def import_doujin(session: Session, folder: Path) -> Doujin:
    """Register the doujin in folder and its pages.

    Runs inside the caller's transaction; any exception must roll it back.
    """
    folder = folder.expanduser().resolve()
    metadata = read_import_metadata(folder)

    logger.info(f"Importing doujin in folder `{folder}`")

    doujin = Doujin(
        title=metadata.title,
        subtitle=metadata.subtitle,
        upload_date=format_rfc3339(metadata.upload_date),
        external_rating=metadata.external_rating,
        tags=metadata.tags,
        characters=metadata.characters,
        artists=metadata.artists,
        groups=metadata.groups,
        languages=metadata.languages,
        pages=metadata.pages,
    )
    session.add(doujin)
    session.flush()

    try:
        entries = sorted(folder.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        raise InvalidImportMetadata(f"Failed to list folder `{folder}`: {exc}") from exc

    imported: List[int] = []
    for entry in entries:
        if entry.is_dir():
            continue
        page_number = page_number_from_name(entry.name)
        if page_number is None:
            continue
        session.add(
            DoujinPage(doujin_id=doujin.id, page_path=str(entry), page_number=page_number)
        )
        imported.append(page_number)
    session.flush()

    check_page_numbers(imported, metadata.pages)

    logger.info(f"✓ {metadata.title} ({metadata.pages} pages)")
    return doujin


def list_import_folders(root: Path) -> List[Path]:
    """Direct sub-folders of root, in name order."""
    root = root.expanduser().resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Import folder does not exist: {root}")
    return sorted((p for p in root.iterdir() if p.is_dir()), key=lambda p: p.name)

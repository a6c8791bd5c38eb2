"""Doujin search statements.

A search is free text matched against title/subtitle plus any number of
required tags and excluded tags. The count statement and the page statement
are built from the same WHERE clause, so the reported total always agrees
with the pages that can be fetched. User input only ever reaches SQL as
bound parameters.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.sql.elements import TextClause

from .errors import InvalidPageNumber, InvalidPageSize

MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 100

_COUNT_COLUMNS = "COUNT(*)"
_ENTRY_COLUMNS = """
    id, title, subtitle, upload_date, external_rating,
    tags, characters, artists, groups, languages,
    COALESCE((
        SELECT p.id FROM DoujinPages AS p
        WHERE p.doujin_id = Doujins.id AND p.page_number = 1
        LIMIT 1
    ), 0) AS cover_page_id
"""

_TEXT_CLAUSE = "(title LIKE :text ESCAPE '\\' OR subtitle LIKE :text ESCAPE '\\')"
_TAG_CLAUSE = (
    "EXISTS (SELECT 1 FROM json_each(Doujins.tags) AS jt WHERE jt.value = :{param})"
)
_ANTI_TAG_CLAUSE = (
    "NOT EXISTS (SELECT 1 FROM json_each(Doujins.tags) AS jt WHERE jt.value = :{param})"
)
_ORDER_AND_PAGE = "ORDER BY upload_date DESC, id DESC LIMIT :limit OFFSET :offset"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user text only matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def validate_page_request(page_size: int, page_number: int) -> None:
    if not MIN_PAGE_SIZE <= page_size <= MAX_PAGE_SIZE:
        raise InvalidPageSize()
    if page_number < 1:
        raise InvalidPageNumber()


def total_pages(count: int, page_size: int) -> int:
    return math.ceil(count / page_size) if count > 0 else 0


@dataclass(frozen=True)
class SearchQuery:
    query: str = ""
    tags: Sequence[str] = ()
    anti_tags: Sequence[str] = ()

    def where_clause(self) -> Tuple[str, Dict[str, Any]]:
        """Return the shared filter SQL and its bound parameters."""
        clauses: List[str] = [_TEXT_CLAUSE]
        params: Dict[str, Any] = {"text": f"%{escape_like(self.query)}%"}

        for index, tag in enumerate(self.tags):
            name = f"tag_{index}"
            clauses.append(_TAG_CLAUSE.format(param=name))
            params[name] = tag

        for index, tag in enumerate(self.anti_tags):
            name = f"anti_tag_{index}"
            clauses.append(_ANTI_TAG_CLAUSE.format(param=name))
            params[name] = tag

        return "WHERE " + "\n  AND ".join(clauses), params

    def _statement(self, columns: str, tail: str = "", **extra: Any) -> TextClause:
        where, params = self.where_clause()
        sql = f"SELECT {columns}\nFROM Doujins\n{where}"
        if tail:
            sql += f"\n{tail}"
        return text(sql).bindparams(**params, **extra)

    def count_statement(self) -> TextClause:
        return self._statement(_COUNT_COLUMNS)

    def page_statement(self, page_size: int, page_number: int) -> TextClause:
        """Page `page_number` (1-based), most recently uploaded first."""
        return self._statement(
            _ENTRY_COLUMNS,
            _ORDER_AND_PAGE,
            limit=page_size,
            offset=page_size * (page_number - 1),
        )

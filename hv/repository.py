"""Data Access Layer for hv.

Every public method takes the AuthContext returned by
CredentialStore.authenticate_user, so nothing in here can run for an
unauthenticated caller.
"""

from __future__ import annotations

from typing import List, Sequence

from sqlalchemy import text
from sqlmodel import Session, col, select

from .credentials import AuthContext
from .errors import InvalidId, InvalidPageNumber, Unauthorized
from .models import Doujin, DoujinPage, TagSet, decode_array
from .schemas import DoujinInfo, SearchResult, TagSetInfo
from .search import SearchQuery, total_pages, validate_page_request

_ALL_TAGS = text(
    """
    SELECT DISTINCT jt.value AS tag
    FROM Doujins, json_each(Doujins.tags) AS jt
    ORDER BY tag
    """
)


class Repository:
    """Reads over the catalog and CRUD over the caller's tag sets."""

    def __init__(self, session: Session):
        self.session = session

    # --- Doujins ---

    def search_doujins(
        self,
        ctx: AuthContext,
        query: str,
        tags: Sequence[str],
        anti_tags: Sequence[str],
        page_size: int,
        page_number: int,
    ) -> SearchResult:
        """Return one page of matches plus the total page count.

        No matches at all is an empty result, not an error; asking for a page
        past the last one is InvalidPageNumber.
        """
        validate_page_request(page_size, page_number)

        search = SearchQuery(query=query, tags=tuple(tags or ()), anti_tags=tuple(anti_tags or ()))
        conn = self.session.connection()

        count = conn.execute(search.count_statement()).scalar_one()
        if count < 1:
            return SearchResult()

        pages = total_pages(count, page_size)
        if page_number > pages:
            raise InvalidPageNumber()

        rows = conn.execute(search.page_statement(page_size, page_number)).mappings().all()
        entries = [
            DoujinInfo(
                id=row["id"],
                title=row["title"],
                subtitle=row["subtitle"],
                upload_date=row["upload_date"],
                external_rating=row["external_rating"],
                tags=decode_array(row["tags"]),
                characters=decode_array(row["characters"]),
                artists=decode_array(row["artists"]),
                groups=decode_array(row["groups"]),
                languages=decode_array(row["languages"]),
                pages=[(1, row["cover_page_id"])],
            )
            for row in rows
        ]
        return SearchResult(entries=entries, total_pages=pages)

    def get_doujin(self, ctx: AuthContext, doujin_id: int) -> DoujinInfo:
        doujin = self.session.get(Doujin, doujin_id)
        if doujin is None:
            raise InvalidId()

        statement = (
            select(DoujinPage.page_number, DoujinPage.id)
            .where(DoujinPage.doujin_id == doujin_id)
            .order_by(col(DoujinPage.page_number))
        )
        pages = [(number, page_id) for number, page_id in self.session.exec(statement).all()]

        return DoujinInfo(
            id=doujin.id,
            title=doujin.title,
            subtitle=doujin.subtitle,
            upload_date=doujin.upload_date,
            external_rating=doujin.external_rating,
            tags=doujin.tags,
            characters=doujin.characters,
            artists=doujin.artists,
            groups=doujin.groups,
            languages=doujin.languages,
            pages=pages,
        )

    def get_all_tags(self, ctx: AuthContext) -> List[str]:
        """Every distinct tag used by any doujin, sorted."""
        return list(self.session.connection().execute(_ALL_TAGS).scalars().all())

    def get_page_file_path(self, ctx: AuthContext, page_id: int) -> str:
        page = self.session.get(DoujinPage, page_id)
        if page is None:
            raise InvalidId()
        return page.page_path

    # --- Tag sets ---

    def _owned_tag_set(self, ctx: AuthContext, tag_set_id: int) -> TagSet:
        tag_set = self.session.get(TagSet, tag_set_id)
        if tag_set is None:
            raise InvalidId()
        if tag_set.user_id != ctx.user_id:
            raise Unauthorized()
        return tag_set

    def create_tag_set(
        self, ctx: AuthContext, tags: Sequence[str], anti_tags: Sequence[str]
    ) -> int:
        tag_set = TagSet(user_id=ctx.user_id, tags=list(tags or ()), anti_tags=list(anti_tags or ()))
        self.session.add(tag_set)
        self.session.flush()
        return tag_set.id

    def delete_tag_set(self, ctx: AuthContext, tag_set_id: int) -> None:
        tag_set = self._owned_tag_set(ctx, tag_set_id)
        self.session.delete(tag_set)
        self.session.flush()

    def change_tag_set(
        self,
        ctx: AuthContext,
        tag_set_id: int,
        tags: Sequence[str],
        anti_tags: Sequence[str],
    ) -> None:
        tag_set = self._owned_tag_set(ctx, tag_set_id)
        tag_set.tags = list(tags or ())
        tag_set.anti_tags = list(anti_tags or ())
        self.session.add(tag_set)
        self.session.flush()

    def get_tag_sets(self, ctx: AuthContext) -> List[TagSetInfo]:
        statement = (
            select(TagSet).where(TagSet.user_id == ctx.user_id).order_by(col(TagSet.id))
        )
        return [
            TagSetInfo(id=tag_set.id, tags=tag_set.tags, anti_tags=tag_set.anti_tags)
            for tag_set in self.session.exec(statement).all()
        ]

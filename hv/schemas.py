"""Payloads returned by library operations.

Field names match the JSON the web client already consumes.
"""

from __future__ import annotations

from typing import List, Tuple

from pydantic import BaseModel, Field


class DoujinInfo(BaseModel):
    id: int
    title: str
    subtitle: str
    upload_date: str
    external_rating: int
    tags: List[str] = Field(default_factory=list)
    characters: List[str] = Field(default_factory=list)
    artists: List[str] = Field(default_factory=list)
    groups: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    # (page_number, page_id); search results only carry the cover page
    pages: List[Tuple[int, int]] = Field(default_factory=list)


class SearchResult(BaseModel):
    entries: List[DoujinInfo] = Field(default_factory=list)
    total_pages: int = 0


class TagSetInfo(BaseModel):
    id: int
    tags: List[str] = Field(default_factory=list)
    anti_tags: List[str] = Field(default_factory=list)

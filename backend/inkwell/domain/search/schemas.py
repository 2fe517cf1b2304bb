"""Pydantic schemas for search queries and scored results."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from inkwell.settings import settings


class SearchFilter(str, Enum):
	ALL = "all"
	POSTS = "posts"
	TITLE = "title"
	CONTENT = "content"
	TAGS = "tags"
	TAGGED = "tagged"
	AUTHORS = "authors"
	NONE = "none"


class SearchQuery(BaseModel):
	term: str = Field(..., description="Raw user input")
	filter: str = Field(default=SearchFilter.ALL.value, description="Filter selector")
	limit: int = Field(default_factory=lambda: settings.search_default_limit, ge=1)

	@field_validator("limit")
	@classmethod
	def _within_max_limit(cls, value: int) -> int:
		if value > settings.search_max_limit:
			raise ValueError(f"limit must be at most {settings.search_max_limit}")
		return value

	def normalized_term(self) -> str:
		return self.term.strip().lower()

	def selected_filter(self) -> Optional[SearchFilter]:
		"""Return the filter enum, or None for an unknown selector."""

		try:
			return SearchFilter(str(self.filter).strip().lower())
		except ValueError:
			return None


class PostResult(BaseModel):
	kind: Literal["post"] = "post"
	id: str
	title: str
	content: str = ""
	author_id: Optional[str] = None
	author_name: Optional[str] = None
	tags: list[str] = Field(default_factory=list)
	genre: Optional[str] = None
	views: int = 0
	created_at: Optional[datetime] = None
	relevance: int = Field(..., ge=0)


class AuthorResult(BaseModel):
	kind: Literal["author"] = "author"
	id: str
	name: str
	username: Optional[str] = None
	email: Optional[str] = None
	about: Optional[str] = None
	relevance: int = Field(..., ge=0)


class TagResult(BaseModel):
	kind: Literal["tag"] = "tag"
	id: str
	tag: str
	count: int = Field(..., ge=0)
	relevance: int = Field(..., ge=0)


ScoredResult = Annotated[Union[PostResult, AuthorResult, TagResult], Field(discriminator="kind")]

SCORED_RESULTS = TypeAdapter(list[ScoredResult])


class SearchResponse(BaseModel):
	q: str
	filter: str
	items: list[ScoredResult]


class CacheStats(BaseModel):
	size: int
	keys: list[str]


class CacheClearResponse(BaseModel):
	cleared: int

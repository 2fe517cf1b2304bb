"""Domain records returned by content sources and search adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union


@dataclass(slots=True)
class PostRecord:
	"""Normalized post as returned by the content API."""

	post_id: str
	title: str
	content: str = ""
	author_id: Optional[str] = None
	author_name: Optional[str] = None
	tags: list[str] = field(default_factory=list)
	genre: Optional[str] = None
	views: int = 0
	created_at: Optional[datetime] = None
	is_deleted: bool = False


@dataclass(slots=True)
class AuthorRecord:
	"""Normalized author (user) record."""

	author_id: str
	name: str
	username: Optional[str] = None
	email: Optional[str] = None
	about: Optional[str] = None


@dataclass(slots=True)
class TagUsage:
	"""A tag aggregated over a bounded listing of posts."""

	tag: str
	count: int


Record = Union[PostRecord, AuthorRecord, TagUsage]


@dataclass(slots=True)
class Hit:
	"""A raw record plus the provisional relevance assigned by its adapter.

	`relevance` stays None when the adapter leaves scoring to the router.
	"""

	record: Record
	relevance: Optional[int] = None

"""Relevance scoring for posts, authors and tags.

All scorers are pure: they take an already lowercased, trimmed term and
return a non-negative integer. Post and author rules are additive so
several weak matches compound, while the large equality bonuses keep
exact matches on top.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from inkwell.domain.search import models

TAG_PREFIX = "#"
RECENT_POST_WINDOW = timedelta(days=7)
POPULAR_VIEWS = 100


def is_tag_query(term: str) -> bool:
	return term.startswith(TAG_PREFIX)


def strip_tag_prefix(term: str) -> str:
	return term[len(TAG_PREFIX):] if is_tag_query(term) else term


def _lower(value: Optional[str]) -> str:
	return (value or "").lower()


def _as_utc(value: datetime) -> datetime:
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


def _freshness_bonus(post: models.PostRecord, now: Optional[datetime]) -> int:
	score = 0
	if post.created_at is not None:
		current = now or datetime.now(timezone.utc)
		if _as_utc(current) - _as_utc(post.created_at) < RECENT_POST_WINDOW:
			score += 2
	if post.views > POPULAR_VIEWS:
		score += 1
	return score


def post_relevance(post: models.PostRecord, term: str, *, now: Optional[datetime] = None) -> int:
	"""Score a post against a normalized term."""

	tags = [tag.lower() for tag in post.tags]
	score = 0

	if is_tag_query(term):
		# `#` queries only ever match tag membership
		tag_query = strip_tag_prefix(term)
		if tag_query and any(tag_query in tag for tag in tags):
			score += 20
		return score + _freshness_bonus(post, now)

	title = _lower(post.title)
	if term in title:
		score += 10
	if title.startswith(term):
		score += 5
	if title == term:
		score += 20
	if term in _lower(post.content):
		score += 3
	if term in _lower(post.author_name):
		score += 5
	if any(term in tag for tag in tags):
		score += 8
	if term in tags:
		score += 15
	if term in _lower(post.genre):
		score += 4
	return score + _freshness_bonus(post, now)


def author_relevance(author: models.AuthorRecord, term: str) -> int:
	"""Score an author against a normalized term."""

	name = _lower(author.name)
	email = _lower(author.email)
	score = 0
	if term in name:
		score += 10
	if name.startswith(term):
		score += 5
	if name == term:
		score += 20
	if email and term in email:
		score += 7
	if email and email == term:
		score += 25
	if term in _lower(author.about):
		score += 3
	return score


def tag_relevance(tag: str, tag_query: str, count: int) -> int:
	"""Usage count plus the single strongest match-tier bonus."""

	tag_lower = tag.lower()
	query = tag_query.lower()
	score = max(count, 0)
	if tag_lower == query:
		score += 100
	elif tag_lower.startswith(query):
		score += 50
	elif query in tag_lower:
		score += 10
	return score


def score_record(record: models.Record, term: str, *, now: Optional[datetime] = None) -> int:
	"""Dispatch to the scorer matching the record variant."""

	if isinstance(record, models.PostRecord):
		return post_relevance(record, term, now=now)
	if isinstance(record, models.AuthorRecord):
		return author_relevance(record, term)
	return tag_relevance(record.tag, strip_tag_prefix(term), record.count)

"""Query guards, limit allocation and cache keys for search."""

from __future__ import annotations

import re
from typing import Optional

from inkwell.domain.search.schemas import SearchFilter, SearchQuery

MIN_TITLE_QUERY_LEN = 2
MIN_TITLE_PROBE_LEN = 3
MIN_USERNAME_LEN = 3

# Percent of `limit` per bucket. Blended `all` search: posts, authors, tags
BLENDED_SHARES = (60, 30, 10)
# High-confidence title hit: authors, tags next to the title match
TITLE_HIT_SHARES = (40, 10)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_term(value: Optional[str]) -> str:
	if not value:
		return ""
	return value.strip().lower()


def looks_like_email(term: str) -> bool:
	return bool(_EMAIL_RE.match(term))


def share_of(limit: int, percent: int) -> int:
	"""Round a share of `limit` up to a whole result count.

	Buckets are rounded independently, so their sum can exceed `limit`;
	the router truncates the merged list afterwards.
	"""

	return -(-limit * percent // 100)


def cache_key(term: str, filter_value: SearchFilter | str, limit: int) -> str:
	selector = filter_value.value if isinstance(filter_value, SearchFilter) else str(filter_value).strip().lower()
	return f"{normalize_term(term)}|{selector}|{limit}"


def is_dispatchable(query: SearchQuery) -> bool:
	"""Whether a query warrants any I/O at all."""

	if not query.normalized_term():
		return False
	selected = query.selected_filter()
	return selected is not None and selected is not SearchFilter.NONE

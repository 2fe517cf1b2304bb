"""Weighted-sum ranking for the personalised post feed."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from time import perf_counter
from typing import Callable, Iterable, Optional

from inkwell.obs import metrics as obs_metrics
from inkwell.settings import settings

SECONDS_PER_DAY = 86400.0
RECENCY_HORIZON_DAYS = 30.0
VIEWS_SATURATION = 100.0
READ_TIME_SATURATION_SECONDS = 300.0
CATCH_ALL_GENRE = "All"


@dataclass(frozen=True, slots=True)
class FeedWeights:
	recency: float = 0.30
	views: float = 0.20
	read_time: float = 0.20
	genre_match: float = 0.15
	engagement: float = 0.15


WEIGHTS = FeedWeights()


@dataclass(slots=True)
class FeedCandidate:
	"""Post attributes the feed scorer reads."""

	post_id: str
	created_at: datetime
	views: int = 0
	average_read_time_seconds: float = 0.0
	genre: Optional[str] = None
	engagement_score: float = 0.0
	is_deleted: bool = False


@dataclass(frozen=True, slots=True)
class ViewerProfile:
	"""Viewer preferences; `favorite_genres=None` means no preferences known."""

	favorite_genres: Optional[tuple[str, ...]] = None


@dataclass(slots=True)
class ScoredCandidate:
	post_id: str
	score: float
	candidate: FeedCandidate


Affinity = Callable[[FeedCandidate, ViewerProfile], float]


def genre_affinity(candidate: FeedCandidate, profile: Optional[ViewerProfile]) -> float:
	"""Map a candidate's genre onto the viewer's favourites, in [0, 1]."""

	if profile is None or profile.favorite_genres is None:
		return 0.0
	if not profile.favorite_genres:
		return 0.5
	if candidate.genre in profile.favorite_genres:
		return 1.0
	if candidate.genre == CATCH_ALL_GENRE:
		return 0.7
	return 0.3


def _age_days(created_at: datetime, now: datetime) -> float:
	if created_at.tzinfo is None:
		created_at = created_at.replace(tzinfo=timezone.utc)
	if now.tzinfo is None:
		now = now.replace(tzinfo=timezone.utc)
	return max(0.0, (now - created_at).total_seconds() / SECONDS_PER_DAY)


def score_candidate(
	candidate: FeedCandidate,
	profile: Optional[ViewerProfile] = None,
	*,
	now: Optional[datetime] = None,
	affinity: Affinity = genre_affinity,
	weights: FeedWeights = WEIGHTS,
) -> float:
	"""Score one candidate.

	Recency, views, read time and genre match are normalised to [0, 1].
	Engagement is weighted as supplied, without normalisation.
	"""

	current = now or datetime.now(timezone.utc)
	recency = math.exp(-_age_days(candidate.created_at, current) / RECENCY_HORIZON_DAYS)
	views = min(candidate.views / VIEWS_SATURATION, 1.0)
	read_time = min(candidate.average_read_time_seconds / READ_TIME_SATURATION_SECONDS, 1.0)
	genre = affinity(candidate, profile or ViewerProfile())
	# TODO: normalise engagement once its upstream range is pinned down; raw today
	engagement = candidate.engagement_score or 0.0

	return float(
		recency * weights.recency
		+ views * weights.views
		+ read_time * weights.read_time
		+ genre * weights.genre_match
		+ engagement * weights.engagement
	)


def rank_candidates(
	candidates: Iterable[FeedCandidate],
	profile: Optional[ViewerProfile] = None,
	*,
	now: Optional[datetime] = None,
	affinity: Affinity = genre_affinity,
) -> list[ScoredCandidate]:
	"""Score every live candidate and order by score, highest first."""

	start = perf_counter()
	current = now or datetime.now(timezone.utc)
	scored = [
		ScoredCandidate(
			post_id=candidate.post_id,
			score=score_candidate(candidate, profile, now=current, affinity=affinity),
			candidate=candidate,
		)
		for candidate in candidates
		if not candidate.is_deleted
	]
	scored.sort(key=lambda item: item.score, reverse=True)

	elapsed_ms = (perf_counter() - start) * 1000.0
	if scored:
		obs_metrics.FEED_RANK_CANDIDATES.inc(len(scored))
	obs_metrics.FEED_RANK_DURATION.observe(elapsed_ms)
	return scored


def top_scored(
	candidates: Iterable[FeedCandidate],
	profile: Optional[ViewerProfile] = None,
	top_n: Optional[int] = None,
	*,
	now: Optional[datetime] = None,
	affinity: Affinity = genre_affinity,
) -> list[ScoredCandidate]:
	limit = top_n if top_n is not None else settings.feed_top_n
	top = rank_candidates(candidates, profile, now=now, affinity=affinity)[: max(limit, 0)]
	if top:
		obs_metrics.FEED_RANK_SCORE_AVG.set(sum(item.score for item in top) / len(top))
	return top


def recommend(
	candidates: Iterable[FeedCandidate],
	profile: Optional[ViewerProfile] = None,
	top_n: Optional[int] = None,
	*,
	now: Optional[datetime] = None,
	affinity: Affinity = genre_affinity,
) -> list[FeedCandidate]:
	"""Return the `top_n` highest-scoring live candidates."""

	return [item.candidate for item in top_scored(candidates, profile, top_n, now=now, affinity=affinity)]


__all__ = [
	"FeedCandidate",
	"FeedWeights",
	"ScoredCandidate",
	"ViewerProfile",
	"WEIGHTS",
	"genre_affinity",
	"rank_candidates",
	"recommend",
	"score_candidate",
	"top_scored",
]

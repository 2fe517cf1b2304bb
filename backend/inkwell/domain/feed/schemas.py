"""Request and response models for the feed recommendation endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from inkwell.domain.feed.ranker import FeedCandidate, ViewerProfile


class FeedCandidateIn(BaseModel):
	post_id: str
	created_at: datetime
	views: int = Field(default=0, ge=0)
	average_read_time_seconds: float = Field(default=0.0, ge=0)
	genre: Optional[str] = None
	engagement_score: float = Field(default=0.0, ge=0)
	is_deleted: bool = False

	def to_candidate(self) -> FeedCandidate:
		return FeedCandidate(
			post_id=self.post_id,
			created_at=self.created_at,
			views=self.views,
			average_read_time_seconds=self.average_read_time_seconds,
			genre=self.genre,
			engagement_score=self.engagement_score,
			is_deleted=self.is_deleted,
		)


class ViewerIn(BaseModel):
	favorite_genres: Optional[list[str]] = None

	def to_profile(self) -> ViewerProfile:
		if self.favorite_genres is None:
			return ViewerProfile()
		return ViewerProfile(favorite_genres=tuple(self.favorite_genres))


class FeedRequest(BaseModel):
	candidates: list[FeedCandidateIn] = Field(default_factory=list)
	viewer: Optional[ViewerIn] = None
	top_n: Optional[int] = Field(default=None, ge=0, le=100)


class RankedPost(BaseModel):
	post_id: str
	score: float


class FeedResponse(BaseModel):
	items: list[RankedPost]

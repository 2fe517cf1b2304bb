"""Feed recommendation endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from inkwell.domain.feed import ranker, schemas

router = APIRouter(tags=["feed"])


@router.post("/feed/recommended", response_model=schemas.FeedResponse)
async def recommended_endpoint(payload: schemas.FeedRequest) -> schemas.FeedResponse:
	profile = payload.viewer.to_profile() if payload.viewer is not None else None
	top = ranker.top_scored(
		[item.to_candidate() for item in payload.candidates],
		profile,
		payload.top_n,
	)
	return schemas.FeedResponse(items=[schemas.RankedPost(post_id=item.post_id, score=item.score) for item in top])

"""REST endpoints for post, author and tag search."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from inkwell.domain.search import policy, schemas
from inkwell.domain.search.service import SearchService, get_service

router = APIRouter(tags=["search"])


def get_search_service() -> SearchService:
	return get_service()


def _parse_query(q: Optional[str], filter: str, limit: Optional[int]) -> schemas.SearchQuery:
	"""Validate query parameters with the same rules the service applies."""

	fields = {"term": q or "", "filter": filter}
	if limit is not None:
		fields["limit"] = limit
	try:
		return schemas.SearchQuery(**fields)
	except ValidationError as exc:
		errors = exc.errors(include_url=False, include_context=False)
		raise RequestValidationError([{**error, "loc": ("query", *error["loc"])} for error in errors]) from exc


@router.get("/search", response_model=schemas.SearchResponse)
async def search_endpoint(
	q: str = Query(default="", max_length=200),
	filter: str = Query(default=schemas.SearchFilter.ALL.value),
	limit: Optional[int] = Query(default=None),
	service: SearchService = Depends(get_search_service),
) -> schemas.SearchResponse:
	query = _parse_query(q, filter, limit)
	items = await service.search(query)
	return schemas.SearchResponse(q=q, filter=filter, items=items)


@router.delete("/search/cache", response_model=schemas.CacheClearResponse)
async def clear_cache_endpoint(
	key: Optional[str] = Query(default=None),
	q: Optional[str] = Query(default=None),
	filter: str = Query(default=schemas.SearchFilter.ALL.value),
	limit: Optional[int] = Query(default=None),
	service: SearchService = Depends(get_search_service),
) -> schemas.CacheClearResponse:
	query = _parse_query(q, filter, limit)
	if key is None and q is not None:
		key = policy.cache_key(q, filter, query.limit)
	if key is not None:
		removed = await service.invalidate(key)
		return schemas.CacheClearResponse(cleared=int(removed))
	return schemas.CacheClearResponse(cleared=await service.clear_cache())


@router.get("/search/cache/stats", response_model=schemas.CacheStats)
async def cache_stats_endpoint(service: SearchService = Depends(get_search_service)) -> schemas.CacheStats:
	return await service.cache_stats()

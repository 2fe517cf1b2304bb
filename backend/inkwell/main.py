"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from inkwell.api import feed, ops, search
from inkwell.api.errors import install_error_handlers
from inkwell.domain.search import clients
from inkwell.domain.search.cache import RedisResultCache
from inkwell.domain.search.service import get_service, set_service
from inkwell.infra.redis import close_redis
from inkwell.obs import init as obs_init

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	service = get_service()
	logger.info(
		"search.service.started",
		extra={
			"source": type(service.source).__name__,
			"cache": type(service.cache).__name__,
		},
	)
	try:
		yield
	finally:
		if isinstance(service.source, clients.HttpContentSource):
			await service.source.aclose()
		if isinstance(service.cache, RedisResultCache):
			await close_redis()
		set_service(None)


app = FastAPI(title="Inkwell Search", lifespan=lifespan)
install_error_handlers(app)
obs_init(app)

app.include_router(ops.router, tags=["ops"])
app.include_router(search.router, tags=["search"])
app.include_router(feed.router, tags=["feed"])

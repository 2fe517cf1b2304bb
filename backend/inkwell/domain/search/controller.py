"""Debounced query controller for interactive search inputs.

Keystrokes restart a debounce timer; only the term present when the timer
fires is dispatched. Every dispatch bumps a generation counter and a
response is surfaced only if its generation is still current, so an older
request that completes late can never overwrite newer results. In-flight
requests are not cancelled, they simply become stale.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from inkwell.domain.search.schemas import ScoredResult, SearchFilter
from inkwell.obs import metrics as obs_metrics
from inkwell.settings import settings

logger = logging.getLogger(__name__)


class TextSearch(Protocol):
	async def search_text(self, term: str, filter: str = ..., limit: Optional[int] = ...) -> list[ScoredResult]: ...


class ControllerState(str, Enum):
	IDLE = "idle"
	DEBOUNCING = "debouncing"
	DISPATCHED = "dispatched"
	RESOLVED = "resolved"


@dataclass(slots=True)
class RecentSearch:
	query: str
	filter: str
	timestamp: datetime


class DebouncedSearchController:
	"""One controller per search input session."""

	def __init__(
		self,
		service: TextSearch,
		*,
		delay_seconds: Optional[float] = None,
		filter: str = SearchFilter.ALL.value,
		limit: Optional[int] = None,
		on_results: Optional[Callable[[list[ScoredResult]], None]] = None,
		history_size: Optional[int] = None,
	) -> None:
		self.service = service
		self.delay_seconds = delay_seconds if delay_seconds is not None else settings.search_debounce_ms / 1000.0
		self.filter = filter
		self.limit = limit or settings.search_default_limit
		self.on_results = on_results
		self.history_size = history_size if history_size is not None else settings.search_recent_history

		self.state = ControllerState.IDLE
		self.term = ""
		self.results: list[ScoredResult] = []
		self.generation = 0
		self.recent_searches: list[RecentSearch] = []
		self._timer: Optional[asyncio.Task] = None
		self._inflight: set[asyncio.Task] = set()

	@property
	def loading(self) -> bool:
		return self.state is ControllerState.DISPATCHED

	def update(self, term: str, filter: Optional[str] = None) -> None:
		"""Record new input and restart the debounce window."""

		self.term = term
		if filter is not None:
			self.filter = filter
		self._cancel_timer()
		if not term.strip():
			self.clear()
			return
		self.state = ControllerState.DEBOUNCING
		self._timer = asyncio.get_running_loop().create_task(self._fire_after_delay())

	async def flush(self) -> list[ScoredResult]:
		"""Dispatch a pending term immediately instead of waiting out the delay."""

		if self.state is not ControllerState.DEBOUNCING:
			return self.results
		self._cancel_timer()
		await self._dispatch(*self._begin())
		return self.results

	def clear(self) -> None:
		"""Drop the query; anything still in flight becomes stale."""

		self._cancel_timer()
		self.generation += 1
		self.term = ""
		self.results = []
		self.state = ControllerState.IDLE

	def clear_recent_searches(self) -> None:
		self.recent_searches = []

	async def close(self) -> None:
		self.clear()
		pending = list(self._inflight)
		if pending:
			await asyncio.gather(*pending, return_exceptions=True)

	def _cancel_timer(self) -> None:
		if self._timer is not None and not self._timer.done():
			self._timer.cancel()
		self._timer = None

	async def _fire_after_delay(self) -> None:
		await asyncio.sleep(self.delay_seconds)
		self._timer = None
		# Run the request outside the timer so a later keystroke cannot cancel it
		task = asyncio.get_running_loop().create_task(self._dispatch(*self._begin()))
		self._inflight.add(task)
		task.add_done_callback(self._inflight.discard)

	def _begin(self) -> tuple[int, str, str]:
		self.generation += 1
		self.state = ControllerState.DISPATCHED
		return self.generation, self.term, self.filter

	async def _dispatch(self, generation: int, term: str, filter_value: str) -> None:
		results = await self.service.search_text(term, filter_value, self.limit)
		if generation != self.generation:
			obs_metrics.inc_stale_response()
			logger.debug("search.controller.stale", extra={"generation": generation, "current": self.generation})
			return
		self.results = results
		# Input typed while this request was out is still waiting on its own timer
		self.state = ControllerState.DEBOUNCING if self._timer is not None else ControllerState.RESOLVED
		self._remember(term, filter_value)
		if self.on_results is not None:
			self.on_results(results)

	def _remember(self, term: str, filter_value: str) -> None:
		query = term.strip()
		if not query or self.history_size <= 0:
			return
		entry = RecentSearch(query=query, filter=filter_value, timestamp=datetime.now(timezone.utc))
		others = [item for item in self.recent_searches if item.query.lower() != query.lower()]
		self.recent_searches = [entry, *others][: self.history_size]

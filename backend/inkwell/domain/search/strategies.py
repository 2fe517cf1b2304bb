"""Ordered fallback strategies for search adapters."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Sequence, TypeVar

from inkwell.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class Strategy(Generic[T]):
	"""A named lookup that yields zero or more hits."""

	name: str
	run: Callable[[], Awaitable[list[T]]]


async def first_non_empty(adapter: str, strategies: Sequence[Strategy[T]]) -> list[T]:
	"""Run strategies in order; the first non-empty, non-failing one wins.

	A strategy that raises is logged and counted, then skipped. When every
	strategy fails or comes back empty the result is an empty list.
	"""

	for strategy in strategies:
		try:
			hits = await strategy.run()
		except Exception:
			logger.warning(
				"search.adapter.failed",
				extra={"adapter": adapter, "strategy": strategy.name},
				exc_info=True,
			)
			obs_metrics.inc_adapter_failure(adapter, strategy.name)
			continue
		if hits:
			logger.debug("search.adapter.hit adapter=%s strategy=%s hits=%d", adapter, strategy.name, len(hits))
			return hits
	return []

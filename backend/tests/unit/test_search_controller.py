import asyncio

import pytest
from prometheus_client import REGISTRY

from inkwell.domain.search.controller import ControllerState, DebouncedSearchController
from inkwell.domain.search.schemas import PostResult


class _StubService:
	"""Records dispatched terms; terms listed in `gates` block until released."""

	def __init__(self) -> None:
		self.calls: list[tuple[str, str, int]] = []
		self.gates: dict[str, asyncio.Event] = {}

	async def search_text(self, term, filter="all", limit=None):
		self.calls.append((term, filter, limit))
		gate = self.gates.get(term)
		if gate is not None:
			await gate.wait()
		return [PostResult(id=f"post-{term}", title=term, relevance=100)]


def _stale_count() -> float:
	return REGISTRY.get_sample_value("inkwell_search_stale_responses_total") or 0.0


@pytest.mark.asyncio
async def test_rapid_keystrokes_dispatch_once():
	service = _StubService()
	controller = DebouncedSearchController(service, delay_seconds=0.05, limit=10)

	for term in ("r", "re", "rea", "reac"):
		controller.update(term)
		await asyncio.sleep(0.01)
	assert controller.state is ControllerState.DEBOUNCING
	assert service.calls == []

	await asyncio.sleep(0.15)

	assert service.calls == [("reac", "all", 10)]
	assert controller.state is ControllerState.RESOLVED
	assert [item.id for item in controller.results] == ["post-reac"]
	await controller.close()


@pytest.mark.asyncio
async def test_late_response_from_older_generation_is_discarded():
	service = _StubService()
	service.gates["slow"] = asyncio.Event()
	controller = DebouncedSearchController(service, delay_seconds=10)
	stale_before = _stale_count()

	controller.update("slow")
	first = asyncio.create_task(controller.flush())
	await asyncio.sleep(0)
	assert controller.loading is True

	controller.update("fast")
	await controller.flush()
	assert [item.id for item in controller.results] == ["post-fast"]

	service.gates["slow"].set()
	await first

	assert [item.id for item in controller.results] == ["post-fast"]
	assert controller.generation == 2
	assert _stale_count() == stale_before + 1


@pytest.mark.asyncio
async def test_clear_cancels_pending_and_in_flight_queries():
	service = _StubService()
	controller = DebouncedSearchController(service, delay_seconds=0.02)

	controller.update("abandoned")
	controller.clear()
	await asyncio.sleep(0.05)
	assert service.calls == []
	assert controller.state is ControllerState.IDLE

	service.gates["inflight"] = asyncio.Event()
	controller.update("inflight")
	task = asyncio.create_task(controller.flush())
	await asyncio.sleep(0)
	controller.clear()
	service.gates["inflight"].set()
	await task

	assert controller.results == []
	assert controller.state is ControllerState.IDLE


@pytest.mark.asyncio
async def test_blank_input_returns_to_idle_without_dispatch():
	service = _StubService()
	controller = DebouncedSearchController(service, delay_seconds=0.01)

	controller.update("   ")
	await asyncio.sleep(0.03)

	assert service.calls == []
	assert controller.state is ControllerState.IDLE
	assert await controller.flush() == []


@pytest.mark.asyncio
async def test_filter_change_and_callback():
	service = _StubService()
	seen = []
	controller = DebouncedSearchController(service, delay_seconds=10, on_results=seen.append)

	controller.update("ada", filter="authors")
	await controller.flush()

	assert service.calls[0][1] == "authors"
	assert [[item.id for item in batch] for batch in seen] == [["post-ada"]]


@pytest.mark.asyncio
async def test_recent_searches_are_deduplicated_and_capped():
	service = _StubService()
	controller = DebouncedSearchController(service, delay_seconds=10, history_size=3)

	for term in ("rust", "go", "Rust", "zig", "odin"):
		controller.update(term)
		await controller.flush()

	assert [item.query for item in controller.recent_searches] == ["odin", "zig", "Rust"]

	controller.clear_recent_searches()
	assert controller.recent_searches == []


@pytest.mark.asyncio
async def test_response_landing_during_new_debounce_keeps_pending_term():
	service = _StubService()
	service.gates["ru"] = asyncio.Event()
	controller = DebouncedSearchController(service, delay_seconds=10)

	controller.update("ru")
	first = asyncio.create_task(controller.flush())
	await asyncio.sleep(0)
	controller.update("rust")

	service.gates["ru"].set()
	await first

	assert [item.id for item in controller.results] == ["post-ru"]
	assert controller.state is ControllerState.DEBOUNCING
	assert controller.loading is False

	results = await controller.flush()

	assert [call[0] for call in service.calls] == ["ru", "rust"]
	assert [item.id for item in results] == ["post-rust"]
	assert controller.state is ControllerState.RESOLVED

"""Central registry for Prometheus metrics used across the service."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"inkwell_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"inkwell_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SEARCH_QUERIES = Counter(
	"inkwell_search_queries_total",
	"Search queries executed",
	["filter"],
)

SEARCH_LATENCY = Histogram(
	"inkwell_search_latency_seconds",
	"Search latency in seconds",
	["filter"],
	buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0),
)

SEARCH_CACHE_EVENTS = Counter(
	"inkwell_search_cache_events_total",
	"Result cache lookups and writes",
	["event"],
)

SEARCH_ADAPTER_FAILURES = Counter(
	"inkwell_search_adapter_failures_total",
	"Content source calls that raised inside an adapter strategy",
	["adapter", "strategy"],
)

SEARCH_STALE_RESPONSES = Counter(
	"inkwell_search_stale_responses_total",
	"Controller responses discarded because a newer generation was dispatched",
)

FEED_RANK_CANDIDATES = Counter(
	"inkwell_feed_rank_candidates_total",
	"Candidates considered",
)

FEED_RANK_DURATION = Histogram(
	"inkwell_feed_rank_duration_ms",
	"Feed rank duration",
	buckets=[1, 5, 10, 20, 40, 80, 160],
)

FEED_RANK_SCORE_AVG = Gauge(
	"inkwell_feed_rank_score_avg",
	"Average score of top-N",
)


def observe_request(route: str, method: str, status: int, latency_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(latency_seconds)


def inc_search_query(filter_name: str) -> None:
	SEARCH_QUERIES.labels(filter=filter_name).inc()


def observe_search_latency(filter_name: str, latency_seconds: float) -> None:
	SEARCH_LATENCY.labels(filter=filter_name).observe(latency_seconds)


def inc_cache_event(event: str) -> None:
	SEARCH_CACHE_EVENTS.labels(event=event).inc()


def inc_adapter_failure(adapter: str, strategy: str) -> None:
	SEARCH_ADAPTER_FAILURES.labels(adapter=adapter, strategy=strategy).inc()


def inc_stale_response() -> None:
	SEARCH_STALE_RESPONSES.inc()

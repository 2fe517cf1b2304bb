"""Search domain exports."""

from .clients import reset_memory_state, seed_memory_store
from .controller import DebouncedSearchController
from .service import SearchService

__all__ = [
	"DebouncedSearchController",
	"SearchService",
	"seed_memory_store",
	"reset_memory_state",
]

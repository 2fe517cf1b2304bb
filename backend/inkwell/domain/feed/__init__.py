"""Feed recommendation exports."""

from .ranker import FeedCandidate, ViewerProfile, recommend, score_candidate

__all__ = ["FeedCandidate", "ViewerProfile", "recommend", "score_candidate"]

"""Rating aggregation."""

from .aggregator import RatingAggregator

__all__ = ["RatingAggregator"]

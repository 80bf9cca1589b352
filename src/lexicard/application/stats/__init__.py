# Application Stats Package
from .service import StatsAggregator

__all__ = ["StatsAggregator"]

# Domain Stats Package
from .models import DailyTrendPoint, StatsOverview, WindowStats

__all__ = ["WindowStats", "DailyTrendPoint", "StatsOverview"]

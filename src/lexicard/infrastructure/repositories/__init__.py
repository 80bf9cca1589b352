# Infrastructure Repository Adapters Package
from .memory import InMemoryRepository
from .sqlite import SqliteRepository

__all__ = ["InMemoryRepository", "SqliteRepository"]

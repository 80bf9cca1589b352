"""
Repository Factory
Centralizes the logic for selecting the storage adapter and optional capabilities.
"""

import logging
import random

from lexicard.application.config import AppConfig
from lexicard.domain.ports import ContentHasher, SpeechPlayer, VocabRepository
from lexicard.infrastructure.capabilities import CommandSpeechPlayer, Sha256ContentHasher
from lexicard.infrastructure.repositories import InMemoryRepository, SqliteRepository

logger = logging.getLogger(__name__)


def get_repository(config: AppConfig) -> VocabRepository:
    """
    Returns the VocabRepository implementation selected by config.
    """
    if config.backend == "memory":
        return InMemoryRepository()

    logger.debug(f"Backend: SQLite ({config.db_path})")
    return SqliteRepository(config.db_path)


def get_content_hasher() -> ContentHasher | None:
    return Sha256ContentHasher()


def get_speech_player(config: AppConfig) -> SpeechPlayer | None:
    if not config.speak:
        return None
    return CommandSpeechPlayer.detect()


def get_rng(config: AppConfig, seed: int | None = None) -> random.Random:
    """Seeded generator when a seed is given (argument first, then config)."""
    seed = seed if seed is not None else config.seed
    return random.Random(seed)

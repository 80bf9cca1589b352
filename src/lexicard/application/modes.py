"""Quiz mode capability lookup: which modes a card's fields can support."""

import random

from lexicard.domain.models import Card, QuizMode

DEFAULT_MODE = QuizMode.ENG_TO_TRANSLATION

# (card attribute, modes it enables); checked in this order.
_CAPABILITIES: list[tuple[str, tuple[QuizMode, ...]]] = [
    ("translation", (QuizMode.ENG_TO_TRANSLATION, QuizMode.TRANSLATION_TO_ENG)),
    ("phonetic", (QuizMode.PHONETIC,)),
    ("term", (QuizMode.LISTENING,)),
]


def supported_modes(card: Card) -> list[QuizMode]:
    modes: list[QuizMode] = []
    for attr, enabled in _CAPABILITIES:
        value = getattr(card, attr)
        if value and str(value).strip():
            modes.extend(enabled)
    return modes


def assign_mode(card: Card, rng: random.Random, preferred: QuizMode | None = None) -> QuizMode:
    """
    Pick the quiz mode for a card.

    The preferred mode wins when the card supports it; otherwise a supported
    mode is chosen uniformly at random, falling back to DEFAULT_MODE.
    """
    modes = supported_modes(card)
    if preferred is not None and preferred in modes:
        return preferred
    if not modes:
        return DEFAULT_MODE
    return rng.choice(modes)

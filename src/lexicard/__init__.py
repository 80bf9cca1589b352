"""lexicard: spaced-repetition vocabulary trainer with deduplicating imports."""

from lexicard.consts import VERSION

__version__ = VERSION

"""Stable identifiers for cards and import batches."""

from ulid import ULID


def generate_card_id() -> str:
    """Generate a stable card ID using ULID."""
    return f"card_{ULID()}"


def generate_batch_id() -> str:
    return f"batch_{ULID()}"

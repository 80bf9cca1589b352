"""Exceptions raised by lexicard's core services and adapters."""


class LexicardError(Exception):
    """Base class for all lexicard errors."""


class StorageError(LexicardError):
    """A storage adapter could not complete an operation."""


class ImportFailure(LexicardError):
    """An import batch was rolled back because the storage transaction failed."""

    def __init__(self, batch_label: str, reason: str):
        super().__init__(f"Import of batch '{batch_label}' failed and was rolled back: {reason}")
        self.batch_label = batch_label


class GradingPreconditionError(LexicardError):
    """Grading was attempted before the answer was revealed or submitted."""

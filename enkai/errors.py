"""Structured error types for the dispatcher."""

from typing import Iterable


class EnkaiError(Exception):
    """Base error for all enkai operations."""
    pass


class ProviderError(EnkaiError):
    """The generation capability failed or returned unusable output."""

    def __init__(self, message: str, model: str = ""):
        self.model = model
        prefix = f"{model}: " if model else ""
        super().__init__(f"{prefix}{message}")


class WriteError(EnkaiError):
    """Persisting a task's output failed."""

    def __init__(self, destination: str, message: str):
        self.destination = destination
        super().__init__(f"Cannot write {destination}: {message}")


class UnknownModelError(EnkaiError):
    """Raised when the estimator is given an unrecognized price tier."""

    def __init__(self, model: str, known: Iterable[str] = ()):
        self.model = model
        self.known = sorted(known)
        hint = f" (known: {', '.join(self.known)})" if self.known else ""
        super().__init__(f"Unknown model '{model}'{hint}")


class EmptyBatchError(EnkaiError):
    """Raised when a batch summary is requested for zero results."""

    def __init__(self):
        super().__init__("Cannot summarize an empty batch")


class ConfigError(EnkaiError):
    """Raised when a configuration file cannot be used."""
    pass


class CompetitionError(EnkaiError):
    """Every variant of a competing task failed."""

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        detail = f": {self.errors[0]}" if self.errors else ""
        super().__init__(f"All {len(self.errors)} variant(s) failed{detail}")

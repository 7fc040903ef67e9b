"""enkai: bounded-concurrency code generation dispatcher."""

__version__ = "1.0.0"

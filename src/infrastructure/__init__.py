"""Infrastructure layer implementations."""

from src.infrastructure import extractors, llm, storage

__all__ = ["storage", "llm", "extractors"]

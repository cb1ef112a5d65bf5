"""Semantic memory engine for multi-agent systems."""

__all__ = [
    "runtime",
]

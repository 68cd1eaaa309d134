"""Durable timeline storage."""

from stacktrace.store.timeline import TimelineStore

__all__ = ["TimelineStore"]

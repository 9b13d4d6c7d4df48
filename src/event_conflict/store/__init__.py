"""Retryable persistent store client."""

from event_conflict.store.client import RetryingStore, create_all

__all__ = ["RetryingStore", "create_all"]

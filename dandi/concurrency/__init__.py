"""Concurrency utilities for Dandi."""

from dandi.concurrency.cancellation import run_until_disconnected

__all__ = ["run_until_disconnected"]

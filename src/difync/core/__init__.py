"""Dify console API client used by the CLI and the sync engine."""

from .client import DifyClient

__all__ = ["DifyClient"]

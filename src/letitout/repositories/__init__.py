"""Persistence layer for data kept on the device."""

from .local_store import LocalStore

__all__ = ["LocalStore"]

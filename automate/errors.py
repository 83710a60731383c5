"""
Exception types raised by the service clients.
"""

from __future__ import annotations


class AutomateError(Exception):
    """Base class for errors raised by the backend."""


class ConfigurationError(AutomateError):
    """Required settings are missing or invalid."""


class StoreError(AutomateError):
    """The relational store rejected or failed an operation."""


class StorageError(AutomateError):
    """Object storage rejected or failed an operation."""


class PushError(AutomateError):
    """The push service failed to accept a message."""

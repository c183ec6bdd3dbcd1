"""Core models: accounts."""

from .account import Account

__all__ = ["Account"]

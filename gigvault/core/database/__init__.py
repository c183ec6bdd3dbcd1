"""
Database subsystem for GigVault.

Provides the async SQLAlchemy engine, transaction management, the retry
policy for transient failures, and ORM base classes for model definitions.
"""

from gigvault.core.database.base import (
    Base,
    IdMixin,
    TimestampMixin,
    utc_now,
)
from gigvault.core.database.retry_policy import (
    DatabaseRetryConfig,
    DatabaseRetryPolicy,
)
from gigvault.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "utc_now",
    # Main service
    "DatabaseService",
    # Retry
    "DatabaseRetryConfig",
    "DatabaseRetryPolicy",
    # Exceptions
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]

"""
GigVault Shared Module

Purpose
-------
Domain-level foundations for every resolver:
- Domain exceptions
- Base service and repository patterns

Architecture
------------
- BaseService: logging, config, events and the `run_atomic` unit-of-work helper
- BaseRepository: type-safe query helpers over a session
- Domain exceptions: business outcomes, never retried

Usage
-----
    from gigvault.modules.shared import (
        BaseService,
        BaseRepository,
        InsufficientResourcesError,
    )
"""

from __future__ import annotations

from .base_repository import BaseRepository
from .base_service import BaseService
from .exceptions import (
    AlreadyCheckedInTodayError,
    AlreadyClaimedError,
    ConflictError,
    CooldownActiveError,
    DuplicateExternalReceiptError,
    DuplicateWithdrawalError,
    GigDomainException,
    InsufficientResourcesError,
    InvalidOperationError,
    NotFoundError,
    TaskInactiveError,
    UnauthorizedError,
    ValidationError,
)

__all__ = [
    "BaseRepository",
    "BaseService",
    "GigDomainException",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "AlreadyClaimedError",
    "AlreadyCheckedInTodayError",
    "DuplicateExternalReceiptError",
    "DuplicateWithdrawalError",
    "InsufficientResourcesError",
    "UnauthorizedError",
    "CooldownActiveError",
    "InvalidOperationError",
    "TaskInactiveError",
]

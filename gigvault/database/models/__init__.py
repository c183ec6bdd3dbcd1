"""
Database Models Package
========================

SQLAlchemy ORM models for the GigVault reward economy, organized by domain.

- Schema only, no business logic
- `Mapped[]` syntax with `mapped_column()`
- Explicit foreign keys with CASCADE / SET NULL rules
- CHECK constraints back every non-negative counter

Domain Organization:
--------------------
- core: Account
- economy: ItemDefinition, InventoryEntry, ExternalRewardReceipt, Withdrawal
- activity: TaskDefinition, TaskCompletion, SpinRecord
- pvp: BattleLog
- enums: Shared type-safe enumerations
"""

from gigvault.core.database.base import Base

from .activity import SpinRecord, TaskCompletion, TaskDefinition
from .core import Account
from .economy import ExternalRewardReceipt, InventoryEntry, ItemDefinition, Withdrawal
from .enums import (
    AccountRole,
    AdminAction,
    BattleOutcome,
    ItemBehavior,
    ItemKind,
    RewardSource,
    WithdrawalStatus,
)
from .pvp import BattleLog

__all__ = [
    "Base",
    # Models
    "Account",
    "ItemDefinition",
    "InventoryEntry",
    "ExternalRewardReceipt",
    "TaskDefinition",
    "TaskCompletion",
    "SpinRecord",
    "Withdrawal",
    "BattleLog",
    # Enums
    "AccountRole",
    "AdminAction",
    "BattleOutcome",
    "ItemBehavior",
    "ItemKind",
    "RewardSource",
    "WithdrawalStatus",
]

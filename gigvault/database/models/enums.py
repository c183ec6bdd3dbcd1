"""
Database Model Enums
====================

Type-safe constants for categorical columns. Values are stored as plain
strings; the enums are declarative schema helpers for the service layer.
"""

from __future__ import annotations

import enum


class AccountRole(str, enum.Enum):
    """Account privilege level. Only ADMIN may execute admin actions."""

    USER = "user"
    ADMIN = "admin"


class ItemKind(str, enum.Enum):
    """
    Consumables are held in quantity and decremented on use; permanent
    items are owned at most once.
    """

    CONSUMABLE = "consumable"
    PERMANENT = "permanent"


class ItemBehavior(str, enum.Enum):
    """What an item does when the engine looks for it."""

    STREAK_PROTECTION = "streak_protection"
    BALANCE_CONCEALMENT = "balance_concealment"
    CONCEALMENT_DETECTION = "concealment_detection"
    REWARD_GRANT = "reward_grant"
    PASSIVE = "passive"


class BattleOutcome(str, enum.Enum):
    """Result of a resolved heist."""

    WIN = "win"
    LOSE = "lose"
    SHIELDED = "shielded"


class RewardSource(str, enum.Enum):
    """Origin of an externally-triggered credit."""

    ADSGRAM = "adsgram"
    FREE_SPIN = "free_spin"
    EXTERNAL = "external"


class WithdrawalStatus(str, enum.Enum):
    """
    Withdrawal lifecycle. Requests are created PENDING; settlement moves
    them on outside this engine.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @classmethod
    def open_statuses(cls) -> tuple[str, ...]:
        return (cls.PENDING.value, cls.PROCESSING.value)


class AdminAction(str, enum.Enum):
    GIFT = "gift"
    BAN = "ban"
    UNBAN = "unban"
    SET_ROLE = "set_role"
    GRANT_ITEM = "grant_item"

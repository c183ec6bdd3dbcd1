"""Economy models: item catalog, inventories, external reward receipts, withdrawals."""

from .external_reward_receipt import ExternalRewardReceipt
from .item import InventoryEntry, ItemDefinition
from .withdrawal import Withdrawal

__all__ = ["ItemDefinition", "InventoryEntry", "ExternalRewardReceipt", "Withdrawal"]

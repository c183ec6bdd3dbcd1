"""Item catalog, purchases and inventory consumption."""

from gigvault.modules.inventory.service import ConsumedItem, InventoryService

__all__ = ["ConsumedItem", "InventoryService"]

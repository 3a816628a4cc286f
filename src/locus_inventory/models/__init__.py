from .item import ITEM_STATES, InventoryItem

__all__ = ["InventoryItem", "ITEM_STATES"]

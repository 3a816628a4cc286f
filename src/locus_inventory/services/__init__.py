from .inventory_service import (
	DuplicateAssetCodeError,
	InvalidItemError,
	InventoryService,
	ItemNotFoundError,
)

__all__ = [
	"InventoryService",
	"DuplicateAssetCodeError",
	"InvalidItemError",
	"ItemNotFoundError",
]

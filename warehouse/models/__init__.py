from warehouse.models.category import Category
from warehouse.models.product import Product
from warehouse.models.inventory_history import ChangeType, InventoryHistory

__all__ = ["Category", "Product", "ChangeType", "InventoryHistory"]

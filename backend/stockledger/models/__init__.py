from .catalog import ProductCategory, Product
from .ledger import InventoryTransaction
from .alerts import LowStockAlert

__all__ = [
    'ProductCategory', 'Product',
    'InventoryTransaction',
    'LowStockAlert',
]

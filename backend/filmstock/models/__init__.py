from .stock import StockPool, StockHistoryEntry, StockTransaction
from .processes import RecyclingProcess, DocumentSequence
from .products import Product, ProductHistoryEntry
from .sales import Sale, CashInflowNotification, LocalCashInflow

__all__ = [
    'StockPool', 'StockHistoryEntry', 'StockTransaction',
    'RecyclingProcess', 'DocumentSequence',
    'Product', 'ProductHistoryEntry',
    'Sale', 'CashInflowNotification', 'LocalCashInflow',
]

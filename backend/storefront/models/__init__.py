from .catalog import Product
from .auth import Admin, AdminSession
from .orders import Order, OrderItem, OrderTimelineEntry
from .inventory import StockMovement, LowStockAlert, AlertNotification, LedgerImmutableError
from .audit import AdminActionLog

__all__ = [
    'Product',
    'Admin', 'AdminSession',
    'Order', 'OrderItem', 'OrderTimelineEntry',
    'StockMovement', 'LowStockAlert', 'AlertNotification', 'LedgerImmutableError',
    'AdminActionLog',
]

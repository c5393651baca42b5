from .directory import Account
from .catalog import Product, StockRelease
from .orders import Order, OrderItem, OrderTimelineEntry
from .deliveries import Delivery, DeliveryItem, DeliveryIssue
from .events import NumberSequence, LifecycleEvent, Notification

__all__ = [
    'Account',
    'Product', 'StockRelease',
    'Order', 'OrderItem', 'OrderTimelineEntry',
    'Delivery', 'DeliveryItem', 'DeliveryIssue',
    'NumberSequence', 'LifecycleEvent', 'Notification',
]

from .tenancy import Organization
from .fields import FieldDefinition
from .inventory import Product, StockMovement
from .orders import Order, OrderLine, ORDER_TYPE_SALE, ORDER_TYPE_REFUND
from .documents import DocumentSequence, LedgerEvent

__all__ = [
    'Organization',
    'FieldDefinition',
    'Product', 'StockMovement',
    'Order', 'OrderLine', 'ORDER_TYPE_SALE', 'ORDER_TYPE_REFUND',
    'DocumentSequence', 'LedgerEvent',
]

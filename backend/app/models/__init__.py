from .auth import User, SessionToken
from .inventory import InventoryItem, StockMovement
from .orders import Order, OrderLine
from .payments import PaymentTransaction, payment_transaction_orders

__all__ = [
    'User', 'SessionToken',
    'InventoryItem', 'StockMovement',
    'Order', 'OrderLine',
    'PaymentTransaction', 'payment_transaction_orders',
]

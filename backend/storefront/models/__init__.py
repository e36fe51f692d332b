from .auth import User, SessionToken
from .catalog import Product, Address, Cart, CartItem
from .orders import Order, OrderItem, OrderPaymentEvent, OrderNotification

__all__ = [
    'User', 'SessionToken',
    'Product', 'Address', 'Cart', 'CartItem',
    'Order', 'OrderItem', 'OrderPaymentEvent', 'OrderNotification',
]

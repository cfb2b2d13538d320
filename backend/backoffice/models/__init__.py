from .auth import User, SessionToken
from .catalog import ProductCategory, Product, StockHistory
from .orders import Order, OrderItem, Payment
from .vouchers import Voucher, VoucherUsage
from .documents import DocumentSequence
from .addresses import Address

__all__ = [
    'User', 'SessionToken',
    'ProductCategory', 'Product', 'StockHistory',
    'Order', 'OrderItem', 'Payment',
    'Voucher', 'VoucherUsage',
    'DocumentSequence',
    'Address',
]

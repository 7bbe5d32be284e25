from .people import Profile
from .catalog import Item, StockReceipt
from .orders import Request, RequestItem, RequestCost

__all__ = [
    'Profile',
    'Item', 'StockReceipt',
    'Request', 'RequestItem', 'RequestCost',
]

from .outlets import Outlet
from .catalog import Category, Product, ProductVariant
from .discounts import DiscountRule
from .sales import Transaction, TransactionLine
from .registers import CashierSession, Expense
from .customers import Customer
from .auth import User, SessionToken
from .settings import PlatformSetting
from .drafts import DraftCart

__all__ = [
    'Outlet',
    'Category', 'Product', 'ProductVariant',
    'DiscountRule',
    'Transaction', 'TransactionLine',
    'CashierSession', 'Expense',
    'Customer',
    'User', 'SessionToken',
    'PlatformSetting',
    'DraftCart',
]

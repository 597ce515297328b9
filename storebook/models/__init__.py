from .inventory import Product, Partner
from .transactions import Transaction, TransactionItem, TRANSACTION_TYPES, TRANSACTION_STATUSES
from .accounting import Account, JournalEntry, JournalItem, ACCOUNT_TYPES
from .hr import Employee, Salary
from .settings import Settings
from .auth import User, SessionToken

__all__ = [
    'Product', 'Partner',
    'Transaction', 'TransactionItem', 'TRANSACTION_TYPES', 'TRANSACTION_STATUSES',
    'Account', 'JournalEntry', 'JournalItem', 'ACCOUNT_TYPES',
    'Employee', 'Salary',
    'Settings',
    'User', 'SessionToken',
]

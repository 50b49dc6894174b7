from .agencies import Agency
from .receipts import Receipt
from .auth import User, SessionToken

__all__ = [
    'Agency',
    'Receipt',
    'User', 'SessionToken',
]

"""Multi-account storage"""

from .models import Account
from .store import AccountStore, AccountStoreProtocol

__all__ = [
    "Account",
    "AccountStore",
    "AccountStoreProtocol",
]

from .credit_account import CreditAccount
from .credit_package import CreditPackage
from .credit_transaction import CreditTransaction

__all__ = [
    "CreditAccount",
    "CreditPackage",
    "CreditTransaction",
]

# ledger/models/__init__.py

"""
LEDGER MODELS PACKAGE EXPORTS
"""

from .credit_account import CreditAccount
from .obligation import Obligation, ObligationLineItem
from .sequence import NumberSequence
from .settlement import Settlement

__all__ = [
    "CreditAccount",
    "NumberSequence",
    "Obligation",
    "ObligationLineItem",
    "Settlement",
]

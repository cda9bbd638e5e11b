"""
Wallet transaction package.

Submits single transactions through a wallet signer with gas resolution,
optional Tenderly simulation and lifecycle callbacks.
"""

from .errors import InsufficientFundsError, NonceTooLowError, SimulationFailedError, WalletTxnError
from .events import TxnEventBuilder
from .models import GasPriceData, TransactionWaiterResult, TxnEvent, TxnEventName, WalletTxnResult
from .wallet_transaction import send_wallet_transaction
from .wallets import TransactionResponse, WalletSigner

__all__ = [
    "send_wallet_transaction",
    "WalletSigner",
    "TransactionResponse",
    "TxnEventBuilder",
    "TxnEvent",
    "TxnEventName",
    "GasPriceData",
    "WalletTxnResult",
    "TransactionWaiterResult",
    "WalletTxnError",
    "SimulationFailedError",
    "InsufficientFundsError",
    "NonceTooLowError",
]
__version__ = "0.1.0"

"""Withdrawal requests."""

from gigvault.modules.wallet.service import WalletService, is_ton_address

__all__ = ["WalletService", "is_ton_address"]

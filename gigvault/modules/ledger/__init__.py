"""Balance ledger: the single writer of account balances."""

from gigvault.modules.ledger.service import LedgerService

__all__ = ["LedgerService"]

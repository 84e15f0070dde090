"""
State Transition Function

The single rule for applying one transaction to an account store. Live
batch processing and fraud-proof replay both call `apply_transaction`,
so the two paths cannot diverge.
"""

import logging
from typing import Iterable

from .accounts import AccountStore
from .errors import NonceOverflowError
from .signers import SignerRecovery
from .types import MAX_NONCE, Transaction

logger = logging.getLogger(__name__)


def apply_transaction(state: AccountStore, transaction: Transaction,
                      recover_signer: SignerRecovery) -> AccountStore:
    """
    Apply one transaction to `state` in place.

    - With a recipient: recover the sender and transfer `value` using
      byte-local saturating arithmetic.
    - Without a recipient (contract creation): no balance change.
    - In both cases the sender nonce is incremented afterwards, whether
      or not the transfer was economically valid.

    Args:
        state: Store to mutate
        transaction: Transaction to apply
        recover_signer: Signer recovery capability

    Returns:
        The same store, for chaining

    Raises:
        InvalidSignatureError: If the sender cannot be recovered; the
            store is left unchanged
        NonceOverflowError: If the sender nonce is at its maximum; the
            store is left unchanged
    """
    sender = recover_signer.recover(transaction)

    current = state.get(sender)
    if current is not None and current.nonce >= MAX_NONCE:
        raise NonceOverflowError(f"Nonce overflow for {sender.hex()}")

    if transaction.recipient is not None:
        state.apply_transfer(sender, transaction.recipient, transaction.value)
    else:
        logger.debug("Contract creation from %s not executed", sender.hex())

    state.increment_nonce(sender)
    return state


def apply_transactions(state: AccountStore, transactions: Iterable[Transaction],
                       recover_signer: SignerRecovery) -> AccountStore:
    """Apply transactions in order; later ones see earlier effects."""
    for transaction in transactions:
        apply_transaction(state, transaction, recover_signer)
    return state

"""
Batch Processing and the Update Log

The BatchProcessor is the only writer of canonical rollup state. Each
batch is applied in order, bracketed by state commitments, and frozen
into an immutable StateUpdate appended to the UpdateLog.

Security features:
- Immutable updates (frozen dataclass, tuple of transactions)
- Commitment chaining: update[i].post == update[i+1].pre
- Atomic batches: canonical state changes only after the whole batch
  applied without error
- Snapshots for replay, taken under the log lock
"""

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .accounts import AccountStore
from .commitment import CommitmentScheme, DEFAULT_SCHEME
from .errors import ChainValidationError, InvalidSignatureError
from .signers import SignerRecovery
from .transition import apply_transaction
from .types import Transaction

logger = logging.getLogger(__name__)


# ============================================================================
# State Update (Immutable)
# ============================================================================

@dataclass(frozen=True)
class StateUpdate:
    """
    One committed batch.

    frozen=True and a tuple of transactions keep entries unchanged after
    they are appended; fraud proofs are checked against them.
    """
    transactions: Tuple[Transaction, ...]
    pre_commitment: bytes
    post_commitment: bytes

    def __post_init__(self):
        object.__setattr__(self, 'transactions', tuple(self.transactions))

    def __len__(self) -> int:
        return len(self.transactions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transactions': [tx.to_dict() for tx in self.transactions],
            'pre_commitment': self.pre_commitment.hex(),
            'post_commitment': self.post_commitment.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StateUpdate':
        return cls(
            transactions=tuple(Transaction.from_dict(tx) for tx in data['transactions']),
            pre_commitment=bytes.fromhex(data['pre_commitment']),
            post_commitment=bytes.fromhex(data['post_commitment']),
        )

    def __str__(self) -> str:
        return (
            f"StateUpdate\n"
            f"  Pre:  {self.pre_commitment.hex()[:16]}...\n"
            f"  Post: {self.post_commitment.hex()[:16]}...\n"
            f"  Transactions: {len(self.transactions)}"
        )


# ============================================================================
# Update Log
# ============================================================================

class UpdateLog:
    """
    Append-only, totally ordered record of every StateUpdate.

    Readers that replay history should work on `snapshot()` so an append
    racing with the replay is never observed half way.
    """

    def __init__(self, updates: Sequence[StateUpdate] = ()):
        self._lock = threading.RLock()
        self._updates: List[StateUpdate] = []
        for update in updates:
            self.append(update)

    def __len__(self) -> int:
        with self._lock:
            return len(self._updates)

    def __getitem__(self, index: int) -> StateUpdate:
        with self._lock:
            return self._updates[index]

    def __iter__(self) -> Iterator[StateUpdate]:
        return iter(self.snapshot())

    @property
    def last(self) -> Optional[StateUpdate]:
        with self._lock:
            return self._updates[-1] if self._updates else None

    @property
    def transaction_count(self) -> int:
        return sum(len(update) for update in self.snapshot())

    def append(self, update: StateUpdate) -> int:
        """
        Append an update.

        Returns:
            Index of the new entry

        Raises:
            ChainValidationError: If the update does not chain onto the
                last entry
        """
        with self._lock:
            if self._updates and self._updates[-1].post_commitment != update.pre_commitment:
                raise ChainValidationError(
                    f"Update {len(self._updates)} pre-commitment does not match "
                    f"previous post-commitment"
                )
            self._updates.append(update)
            return len(self._updates) - 1

    def snapshot(self) -> Tuple[StateUpdate, ...]:
        """Consistent immutable view of the log."""
        with self._lock:
            return tuple(self._updates)

    def validate_chain(self) -> bool:
        """
        Check the commitment chain of every adjacent pair.

        Returns:
            True if the chain is intact

        Raises:
            ChainValidationError: At the first broken link
        """
        updates = self.snapshot()
        for i in range(1, len(updates)):
            if updates[i - 1].post_commitment != updates[i].pre_commitment:
                raise ChainValidationError(
                    f"Chain broken between updates {i - 1} and {i}"
                )
        return True

    def to_json(self) -> str:
        """Serialize the log to JSON."""
        return json.dumps({
            'updates': [update.to_dict() for update in self.snapshot()],
        }, indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> 'UpdateLog':
        """
        Deserialize a log; the chain is validated while loading.

        Raises:
            ChainValidationError: If the loaded chain is broken
        """
        data = json.loads(json_str)
        return cls([StateUpdate.from_dict(update) for update in data['updates']])


# ============================================================================
# Batch Processor
# ============================================================================

class BatchProcessor:
    """
    Applies ordered batches to canonical state and records them.

    Features:
    - Before/after commitments per batch
    - Sequential application in batch order
    - All-or-nothing: a failing transaction leaves state and log untouched
    """

    def __init__(
        self,
        state: Optional[AccountStore] = None,
        log: Optional[UpdateLog] = None,
        recover_signer: Optional[SignerRecovery] = None,
        scheme: Optional[CommitmentScheme] = None
    ):
        """
        Args:
            state: Canonical state to own (empty if omitted)
            log: Update log to append to (new if omitted)
            recover_signer: Signer recovery capability (required)
            scheme: Commitment scheme (SHA-256 fold if omitted)
        """
        if recover_signer is None:
            raise ValueError("A signer recovery capability is required")
        self._state = state if state is not None else AccountStore()
        self._log = log if log is not None else UpdateLog()
        self._recover_signer = recover_signer
        self._scheme = scheme or DEFAULT_SCHEME

    @property
    def state(self) -> AccountStore:
        return self._state

    @property
    def log(self) -> UpdateLog:
        return self._log

    @property
    def recover_signer(self) -> SignerRecovery:
        return self._recover_signer

    @property
    def scheme(self) -> CommitmentScheme:
        return self._scheme

    def commitment(self) -> bytes:
        return self._scheme.commit(self._state.accounts_sorted())

    def process(self, batch: Sequence[Transaction]) -> StateUpdate:
        """
        Apply a batch and append its StateUpdate.

        Args:
            batch: Transactions in application order

        Returns:
            The appended update

        Raises:
            InvalidSignatureError: If any sender cannot be recovered; its
                `tx_index` names the failing position
        """
        transactions = tuple(batch)
        pre_commitment = self.commitment()

        working = self._state.copy()
        for tx_index, transaction in enumerate(transactions):
            try:
                apply_transaction(working, transaction, self._recover_signer)
            except InvalidSignatureError as e:
                logger.warning("Batch rejected: tx %d has an invalid signature", tx_index)
                raise InvalidSignatureError(str(e), tx_index=tx_index) from e

        post_commitment = self._scheme.commit(working.accounts_sorted())
        update = StateUpdate(transactions, pre_commitment, post_commitment)
        index = self._log.append(update)

        self._state.replace_with(working)
        logger.info(
            "Committed update %d: %d txs, %s -> %s",
            index, len(transactions), pre_commitment.hex()[:16], post_commitment.hex()[:16]
        )
        return update

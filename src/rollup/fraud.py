"""
Fraud Proofs

Batches are accepted without a validity proof. Anyone holding the
public update log can later single out one transaction and show what
it did to the state:

1. Replay every earlier transaction from genesis
2. Commit to the replayed state (pre-commitment)
3. Apply the disputed transaction and commit again (post-commitment)

The verifier repeats the replay on its own and trusts nothing in the
proof except the indices and the disputed transaction. Replays run on
private copies built from a snapshot of the log; canonical state is
never touched.

Also here: FraudDetector, which scans the log for transfers that the
byte-local saturating arithmetic silently clamped.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .accounts import AccountStore
from .batch import StateUpdate, UpdateLog
from .commitment import CommitmentScheme, DEFAULT_SCHEME
from .errors import InvalidSignatureError, NonceOverflowError
from .signers import SignerRecovery
from .transition import apply_transaction, apply_transactions
from .types import Transaction, WORD_SIZE

logger = logging.getLogger(__name__)


# ============================================================================
# Fraud Proof (Immutable)
# ============================================================================

@dataclass(frozen=True)
class FraudProof:
    """
    Self-contained claim about one transaction of the update log.

    Verifiable by anyone holding the log: no field refers to the
    generator's internal state.
    """
    update_index: int
    tx_index: int
    pre_commitment: bytes
    post_commitment: bytes
    disputed_transaction: Transaction

    def to_dict(self) -> Dict[str, Any]:
        return {
            'update_index': self.update_index,
            'tx_index': self.tx_index,
            'pre_commitment': self.pre_commitment.hex(),
            'post_commitment': self.post_commitment.hex(),
            'disputed_transaction': self.disputed_transaction.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FraudProof':
        return cls(
            update_index=data['update_index'],
            tx_index=data['tx_index'],
            pre_commitment=bytes.fromhex(data['pre_commitment']),
            post_commitment=bytes.fromhex(data['post_commitment']),
            disputed_transaction=Transaction.from_dict(data['disputed_transaction']),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> 'FraudProof':
        return cls.from_dict(json.loads(json_str))

    def __str__(self) -> str:
        return (
            f"FraudProof (update {self.update_index}, tx {self.tx_index})\n"
            f"  Pre:  {self.pre_commitment.hex()[:16]}...\n"
            f"  Post: {self.post_commitment.hex()[:16]}...\n"
            f"  Disputed: {self.disputed_transaction}"
        )


# ============================================================================
# Replay
# ============================================================================

def locate(updates: Sequence[StateUpdate], update_index: int, tx_index: int) -> Optional[Transaction]:
    """The logged transaction at (update_index, tx_index), or None if out of range."""
    if not 0 <= update_index < len(updates):
        return None
    transactions = updates[update_index].transactions
    if not 0 <= tx_index < len(transactions):
        return None
    return transactions[tx_index]


def replay_until(
    updates: Sequence[StateUpdate],
    update_index: int,
    tx_index: int,
    recover_signer: SignerRecovery,
    genesis: Optional[AccountStore] = None
) -> AccountStore:
    """
    Rebuild the state just before transaction (update_index, tx_index).

    Applies every transaction of updates [0, update_index) and then
    transactions [0, tx_index) of the target update, starting from a
    copy of `genesis` (empty if omitted).
    """
    state = genesis.copy() if genesis is not None else AccountStore()
    for update in updates[:update_index]:
        apply_transactions(state, update.transactions, recover_signer)
    apply_transactions(state, updates[update_index].transactions[:tx_index], recover_signer)
    return state


class _Replayer:
    """Shared configuration of the generator and the verifier."""

    def __init__(
        self,
        log: UpdateLog,
        recover_signer: SignerRecovery,
        scheme: Optional[CommitmentScheme] = None,
        genesis: Optional[AccountStore] = None
    ):
        self._log = log
        self._recover_signer = recover_signer
        self._scheme = scheme or DEFAULT_SCHEME
        self._genesis = genesis.copy() if genesis is not None else AccountStore()

    def _commit(self, state: AccountStore) -> bytes:
        return self._scheme.commit(state.accounts_sorted())

    def _replay(self, updates, update_index: int, tx_index: int) -> AccountStore:
        return replay_until(updates, update_index, tx_index, self._recover_signer, self._genesis)


# ============================================================================
# Generator
# ============================================================================

class FraudProofGenerator(_Replayer):
    """
    Builds fraud proofs by replaying the log from genesis.

    Replay cost is linear in the number of transactions before the
    disputed one; that is the price of a proof anyone can rebuild.
    """

    def generate(self, update_index: int, tx_index: int) -> Optional[FraudProof]:
        """
        Package pre/post commitments around one logged transaction.

        Args:
            update_index: Index of the update in the log
            tx_index: Index of the transaction inside that update

        Returns:
            The proof, or None if either index is out of range

        Raises:
            InvalidSignatureError: If replaying the log fails to recover a
                sender (signer capability differs from the live one)
        """
        updates = self._log.snapshot()
        disputed = locate(updates, update_index, tx_index)
        if disputed is None:
            logger.debug("No transaction at update %d, tx %d", update_index, tx_index)
            return None

        pre_state = self._replay(updates, update_index, tx_index)
        pre_commitment = self._commit(pre_state)

        post_state = apply_transaction(pre_state.copy(), disputed, self._recover_signer)
        post_commitment = self._commit(post_state)

        logger.info("Generated fraud proof for update %d, tx %d", update_index, tx_index)
        return FraudProof(
            update_index=update_index,
            tx_index=tx_index,
            pre_commitment=pre_commitment,
            post_commitment=post_commitment,
            disputed_transaction=disputed,
        )


# ============================================================================
# Verifier
# ============================================================================

class FraudProofVerifier(_Replayer):
    """Checks a fraud proof against an independent replay of the log."""

    def verify(self, proof: FraudProof) -> bool:
        """
        Accept a proof iff an independent replay reproduces both
        commitments.

        The pre-commitment is recomputed from the log alone. The post
        commitment is recomputed by applying the proof's own disputed
        transaction, not the log's copy.

        Returns:
            True if both commitments match; False otherwise, including
            out-of-range indices and any replayed or disputed transaction
            whose sender cannot be recovered
        """
        updates = self._log.snapshot()
        if locate(updates, proof.update_index, proof.tx_index) is None:
            logger.warning(
                "Rejected proof: no transaction at update %d, tx %d",
                proof.update_index, proof.tx_index
            )
            return False

        try:
            state = self._replay(updates, proof.update_index, proof.tx_index)
        except (InvalidSignatureError, NonceOverflowError) as e:
            logger.warning("Rejected proof: log replay failed: %s", e)
            return False

        if self._commit(state) != proof.pre_commitment:
            logger.warning("Rejected proof: pre-commitment mismatch")
            return False

        try:
            apply_transaction(state, proof.disputed_transaction, self._recover_signer)
        except (InvalidSignatureError, NonceOverflowError) as e:
            logger.warning("Rejected proof: disputed transaction not applicable: %s", e)
            return False

        if self._commit(state) != proof.post_commitment:
            logger.warning("Rejected proof: post-commitment mismatch")
            return False

        logger.info("Fraud proof for update %d, tx %d verified", proof.update_index, proof.tx_index)
        return True


# ============================================================================
# Detector
# ============================================================================

@dataclass(frozen=True)
class ClampedTransfer:
    """A logged transfer whose arithmetic saturated on some bytes."""
    update_index: int
    tx_index: int
    sender: bytes
    recipient: bytes
    underflow_bytes: Tuple[int, ...]
    overflow_bytes: Tuple[int, ...]


def clamped_bytes(state: AccountStore, sender: bytes, recipient: bytes,
                  value: bytes) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """
    Byte positions where a transfer would saturate.

    A self-transfer only keeps the recipient side, so it can only
    overflow.
    """
    from_account = state.get(sender)
    to_account = state.get(recipient)
    from_balance = from_account.balance if from_account else bytes(WORD_SIZE)
    to_balance = to_account.balance if to_account else bytes(WORD_SIZE)

    underflow = ()
    if sender != recipient:
        underflow = tuple(i for i in range(WORD_SIZE) if from_balance[i] < value[i])
    overflow = tuple(i for i in range(WORD_SIZE) if to_balance[i] + value[i] > 255)
    return underflow, overflow


class FraudDetector(_Replayer):
    """
    Finds disputable transactions by replaying the whole log.

    Each hit is a transfer the sequencer accepted although the balances
    could not cover it byte for byte.
    """

    def find_clamped_transfers(self) -> List[ClampedTransfer]:
        updates = self._log.snapshot()
        state = self._genesis.copy()
        found = []

        for update_index, update in enumerate(updates):
            for tx_index, transaction in enumerate(update.transactions):
                if transaction.recipient is not None:
                    sender = self._recover_signer.recover(transaction)
                    underflow, overflow = clamped_bytes(
                        state, sender, transaction.recipient, transaction.value
                    )
                    if underflow or overflow:
                        found.append(ClampedTransfer(
                            update_index, tx_index, sender, transaction.recipient,
                            underflow, overflow
                        ))
                apply_transaction(state, transaction, self._recover_signer)

        if found:
            logger.info("Found %d clamped transfers in %d updates", len(found), len(updates))
        return found

"""
Optimistic Rollup

Owns one rollup instance: genesis, canonical state, update log and the
components that read and write them. Nothing here is process-global;
create as many independent rollups as needed.
"""

import logging
from typing import List, Optional, Sequence

from ..integration.event_logger import EventLogger, EventType
from .accounts import AccountStore
from .batch import BatchProcessor, StateUpdate, UpdateLog
from .commitment import CommitmentScheme, DEFAULT_SCHEME
from .disputes import DisputeRecord, DisputeTracker
from .errors import InvalidSignatureError, RollupError
from .fraud import (
    ClampedTransfer, FraudDetector, FraudProof, FraudProofGenerator, FraudProofVerifier
)
from .signers import FixedSignerRecovery, SignerRecovery
from .types import Account, Transaction, u256

logger = logging.getLogger(__name__)


class OptimisticRollup:
    """
    Sequencer-side rollup with fraud-proof support.

    Example:
        >>> from src.rollup.types import transfer
        >>> rollup = OptimisticRollup()
        >>> rollup.seed_account(b'\\x00' * 20, balance=200)
        >>> update = rollup.process_batch([transfer(b'\\x01' * 20, 100)])
        >>> rollup.verify_fraud_proof(rollup.generate_fraud_proof(0, 0))
        True
    """

    def __init__(
        self,
        recover_signer: Optional[SignerRecovery] = None,
        scheme: Optional[CommitmentScheme] = None,
        event_logger: Optional[EventLogger] = None
    ):
        """
        Args:
            recover_signer: Signer recovery used by live processing and
                by every replay (the all-zero-address stub if omitted)
            scheme: Commitment scheme (SHA-256 fold if omitted)
            event_logger: Audit trail to record into (new if omitted)
        """
        self._recover_signer = recover_signer if recover_signer is not None else FixedSignerRecovery()
        self._scheme = scheme or DEFAULT_SCHEME
        self._genesis = AccountStore()
        self._state = AccountStore()
        self._log = UpdateLog()
        self._processor = BatchProcessor(self._state, self._log, self._recover_signer, self._scheme)
        self._disputes = DisputeTracker()
        self._events = event_logger if event_logger is not None else EventLogger()

    # ========================================================================
    # Read-only views
    # ========================================================================

    @property
    def log(self) -> UpdateLog:
        return self._log

    @property
    def genesis(self) -> AccountStore:
        return self._genesis.copy()

    @property
    def state(self) -> AccountStore:
        """Copy of the canonical state."""
        return self._state.copy()

    @property
    def disputes(self) -> DisputeTracker:
        return self._disputes

    @property
    def events(self) -> EventLogger:
        return self._events

    def account(self, address: bytes) -> Account:
        """Current account (a copy; zero account if never touched)."""
        account = self._state.get(address)
        return account.copy() if account is not None else Account()

    def state_commitment(self) -> bytes:
        return self._processor.commitment()

    # ========================================================================
    # Writes
    # ========================================================================

    def seed_account(self, address: bytes, balance: int = 0, nonce: int = 0) -> None:
        """
        Give an account its genesis balance.

        Raises:
            RollupError: After the first batch; genesis is fixed from then on
        """
        if len(self._log):
            raise RollupError("Accounts can only be seeded before the first batch")
        account = Account(nonce=nonce, balance=u256(balance))
        self._genesis.set_account(address, account)
        self._state.set_account(address, account)
        self._events.record(EventType.ACCOUNT_SEEDED, address=address.hex(), balance=balance)

    def process_batch(self, transactions: Sequence[Transaction]) -> StateUpdate:
        """
        Apply and commit a batch; the new update starts PENDING.

        Raises:
            InvalidSignatureError: State and log are left unchanged
        """
        try:
            update = self._processor.process(transactions)
        except InvalidSignatureError as e:
            self._events.record(EventType.BATCH_REJECTED, tx_index=e.tx_index, reason=str(e))
            raise

        update_index = len(self._log) - 1
        self._disputes.register(update_index)
        self._events.record(
            EventType.BATCH_COMMITTED,
            update_index=update_index,
            transactions=len(update),
            pre=update.pre_commitment.hex(),
            post=update.post_commitment.hex(),
        )
        return update

    # ========================================================================
    # Fraud proofs
    # ========================================================================

    def _replayer_args(self):
        return self._log, self._recover_signer, self._scheme, self._genesis

    def generate_fraud_proof(self, update_index: int, tx_index: int) -> Optional[FraudProof]:
        """Proof for one logged transaction, or None if out of range."""
        proof = FraudProofGenerator(*self._replayer_args()).generate(update_index, tx_index)
        if proof is not None:
            self._events.record(
                EventType.PROOF_GENERATED, update_index=update_index, tx_index=tx_index
            )
        return proof

    def verify_fraud_proof(self, proof: FraudProof) -> bool:
        valid = FraudProofVerifier(*self._replayer_args()).verify(proof)
        self._events.record(
            EventType.PROOF_VERIFIED if valid else EventType.PROOF_REJECTED,
            update_index=proof.update_index,
            tx_index=proof.tx_index,
        )
        return valid

    def find_clamped_transfers(self) -> List[ClampedTransfer]:
        """Transfers the sequencer accepted although funds did not cover them."""
        return FraudDetector(*self._replayer_args()).find_clamped_transfers()

    # ========================================================================
    # Disputes
    # ========================================================================

    def finalize_update(self, update_index: int) -> DisputeRecord:
        """Mark an unchallenged update as final."""
        record = self._disputes.finalize(update_index)
        self._events.record(EventType.UPDATE_FINALIZED, update_index=update_index)
        return record

    def challenge(self, proof: FraudProof) -> DisputeRecord:
        """
        Open a challenge with a proof and resolve it by verification.

        Resolution only records the outcome; reverting the update and
        settling penalties and rewards happen outside this engine.

        Raises:
            DisputeStateError: If the update is not PENDING
        """
        self._disputes.open_challenge(proof)
        self._events.record(
            EventType.CHALLENGE_OPENED, update_index=proof.update_index, tx_index=proof.tx_index
        )

        proven = self.verify_fraud_proof(proof)
        record = self._disputes.resolve(proof.update_index, proven)
        if proven:
            logger.warning("Update %d proven fraudulent", proof.update_index)
            self._events.record(EventType.UPDATE_PROVEN_FRAUDULENT, update_index=proof.update_index)
        else:
            self._events.record(EventType.UPDATE_CONFIRMED, update_index=proof.update_index)
        return record

"""
Dispute Tracking

Per-update status machine for challenges:

    PENDING -> UNCHALLENGED                 (no challenge, stays final)
    PENDING -> CHALLENGED -> CONFIRMED      (proof did not verify)
                          -> PROVEN_FRAUDULENT (proof verified)

Only the status and the proof are recorded. Reverting the update,
penalizing the submitter and rewarding the challenger belong to the
consensus / economic layer outside this engine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from .errors import DisputeStateError
from .fraud import FraudProof


class DisputeStatus(Enum):
    PENDING = "pending"
    UNCHALLENGED = "unchallenged"
    CHALLENGED = "challenged"
    CONFIRMED = "confirmed"
    PROVEN_FRAUDULENT = "proven_fraudulent"


TERMINAL_STATUSES = (
    DisputeStatus.UNCHALLENGED,
    DisputeStatus.CONFIRMED,
    DisputeStatus.PROVEN_FRAUDULENT,
)


@dataclass
class DisputeRecord:
    update_index: int
    status: DisputeStatus = DisputeStatus.PENDING
    proof: Optional[FraudProof] = None


class DisputeTracker:
    """Holds one DisputeRecord per update index."""

    def __init__(self):
        self._records: Dict[int, DisputeRecord] = {}

    def __contains__(self, update_index: int) -> bool:
        return update_index in self._records

    def register(self, update_index: int) -> DisputeRecord:
        """
        Start tracking a freshly appended update as PENDING.

        Args:
            update_index: Index of the update in the log

        Returns:
            The new record

        Raises:
            DisputeStateError: If the update is already tracked
        """
        if update_index in self._records:
            raise DisputeStateError(f"Update {update_index} is already tracked")
        record = DisputeRecord(update_index)
        self._records[update_index] = record
        return record

    def status(self, update_index: int) -> DisputeStatus:
        return self._get(update_index).status

    def record(self, update_index: int) -> DisputeRecord:
        return self._get(update_index)

    def finalize(self, update_index: int) -> DisputeRecord:
        """
        PENDING -> UNCHALLENGED.

        Raises:
            DisputeStateError: If the update is untracked or not PENDING
        """
        record = self._get(update_index)
        self._expect(record, DisputeStatus.PENDING)
        record.status = DisputeStatus.UNCHALLENGED
        return record

    def open_challenge(self, proof: FraudProof) -> DisputeRecord:
        """
        PENDING -> CHALLENGED, keeping the proof.

        Args:
            proof: Proof naming the challenged update

        Returns:
            The updated record

        Raises:
            DisputeStateError: If the update is untracked or not PENDING
        """
        record = self._get(proof.update_index)
        self._expect(record, DisputeStatus.PENDING)
        record.status = DisputeStatus.CHALLENGED
        record.proof = proof
        return record

    def resolve(self, update_index: int, proven: bool) -> DisputeRecord:
        """
        CHALLENGED -> PROVEN_FRAUDULENT if proven else CONFIRMED.

        Args:
            update_index: Index of the challenged update
            proven: Whether the challenge's proof verified

        Returns:
            The updated record

        Raises:
            DisputeStateError: If the update is untracked or not CHALLENGED
        """
        record = self._get(update_index)
        self._expect(record, DisputeStatus.CHALLENGED)
        record.status = DisputeStatus.PROVEN_FRAUDULENT if proven else DisputeStatus.CONFIRMED
        return record

    def is_settled(self, update_index: int) -> bool:
        return self.status(update_index) in TERMINAL_STATUSES

    def with_status(self, status: DisputeStatus) -> List[int]:
        return sorted(i for i, r in self._records.items() if r.status == status)

    def _get(self, update_index: int) -> DisputeRecord:
        record = self._records.get(update_index)
        if record is None:
            raise DisputeStateError(f"Update {update_index} is not tracked")
        return record

    @staticmethod
    def _expect(record: DisputeRecord, expected: DisputeStatus) -> None:
        if record.status != expected:
            raise DisputeStateError(
                f"Update {record.update_index} is {record.status.value}, "
                f"expected {expected.value}"
            )

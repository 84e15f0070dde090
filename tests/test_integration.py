"""
Integration tests for the rollup.

Tests end-to-end workflows through OptimisticRollup:
- Seeding, batches, proofs and challenges
- Audit trail events
- Dispute status machine
- ECDSA-signed transactions
"""

import pytest
from dataclasses import replace

from src.core_crypto.signing import KeyPair
from src.integration.event_logger import EventLogger, EventType
from src.rollup.disputes import DisputeStatus, DisputeTracker
from src.rollup.errors import DisputeStateError, InvalidSignatureError, RollupError
from src.rollup.rollup import OptimisticRollup
from src.rollup.signers import KeyringSignerRecovery, TransactionSigner
from src.rollup.types import Account, address_from_byte, transfer, u256

ALICE = address_from_byte(0x00)
BOB = address_from_byte(0x01)
CAROL = address_from_byte(0x02)


def scenario_rollup():
    rollup = OptimisticRollup()
    rollup.seed_account(ALICE, balance=200)
    rollup.process_batch([transfer(BOB, 100, nonce=0)])
    rollup.process_batch([transfer(CAROL, 150, nonce=1)])
    return rollup


class TestRollupWorkflow:

    def test_scenario_end_to_end(self):
        rollup = scenario_rollup()
        assert rollup.account(ALICE) == Account(nonce=2, balance=u256(0))
        assert rollup.account(BOB).balance_int == 100
        assert rollup.account(CAROL).balance_int == 150

        proof = rollup.generate_fraud_proof(1, 0)
        assert proof is not None
        assert rollup.verify_fraud_proof(proof)

    def test_untouched_account_is_zero(self):
        rollup = scenario_rollup()
        assert rollup.account(address_from_byte(0x77)) == Account()

    def test_state_commitment_tracks_log(self):
        rollup = scenario_rollup()
        assert rollup.state_commitment() == rollup.log.last.post_commitment

    def test_views_are_copies(self):
        rollup = scenario_rollup()
        rollup.state.increment_nonce(ALICE)
        rollup.account(ALICE).nonce = 99
        rollup.genesis.increment_nonce(ALICE)
        assert rollup.account(ALICE).nonce == 2
        assert rollup.generate_fraud_proof(1, 0) is not None
        assert rollup.verify_fraud_proof(rollup.generate_fraud_proof(1, 0))

    def test_seed_after_first_batch_rejected(self):
        rollup = scenario_rollup()
        with pytest.raises(RollupError):
            rollup.seed_account(address_from_byte(0x09), balance=1)

    def test_out_of_range_proof(self):
        rollup = scenario_rollup()
        assert rollup.generate_fraud_proof(2, 0) is None
        assert rollup.generate_fraud_proof(0, 1) is None

    def test_find_clamped_transfers(self):
        rollup = scenario_rollup()
        hits = rollup.find_clamped_transfers()
        assert [(h.update_index, h.tx_index) for h in hits] == [(1, 0)]

    def test_independent_rollups(self):
        first = scenario_rollup()
        second = OptimisticRollup()
        assert len(second.log) == 0
        assert second.account(BOB) == Account()
        assert len(first.log) == 2


class TestSignedRollup:
    """Rollup driven by ECDSA-signed transactions."""

    def setup_method(self):
        self.alice = KeyPair.from_secret(0xA11CE)
        self.bob = KeyPair.from_secret(0xB0B)
        keyring = KeyringSignerRecovery([self.alice.public_key, self.bob.public_key])
        self.rollup = OptimisticRollup(recover_signer=keyring)
        self.rollup.seed_account(self.alice.address, balance=200)

    def sign(self, keys, tx):
        return TransactionSigner(keys).sign(tx)

    def test_signed_batches(self):
        self.rollup.process_batch([self.sign(self.alice, transfer(self.bob.address, 80, nonce=0))])
        self.rollup.process_batch([self.sign(self.bob, transfer(CAROL, 30, nonce=0))])
        assert self.rollup.account(self.alice.address) == Account(nonce=1, balance=u256(120))
        assert self.rollup.account(self.bob.address) == Account(nonce=1, balance=u256(50))
        assert self.rollup.account(CAROL).balance_int == 30

        for update_index in range(2):
            proof = self.rollup.generate_fraud_proof(update_index, 0)
            assert self.rollup.verify_fraud_proof(proof)

    def test_unsigned_batch_rejected(self):
        good = self.sign(self.alice, transfer(BOB, 10))
        with pytest.raises(InvalidSignatureError) as excinfo:
            self.rollup.process_batch([good, transfer(BOB, 10)])
        assert excinfo.value.tx_index == 1
        assert len(self.rollup.log) == 0
        assert self.rollup.account(self.alice.address) == Account(balance=u256(200))
        rejected = self.rollup.events.get_events_by_type(EventType.BATCH_REJECTED)
        assert rejected[0].details["tx_index"] == 1

    def test_tampered_disputed_transaction_rejected(self):
        self.rollup.process_batch([self.sign(self.alice, transfer(BOB, 10))])
        proof = self.rollup.generate_fraud_proof(0, 0)
        tx = replace(proof.disputed_transaction, value=u256(11))
        assert not self.rollup.verify_fraud_proof(replace(proof, disputed_transaction=tx))


class TestEventTrail:

    def test_events_recorded_in_order(self):
        rollup = scenario_rollup()
        proof = rollup.generate_fraud_proof(1, 0)
        rollup.verify_fraud_proof(proof)
        types = [e.event_type for e in rollup.events.get_all_events()]
        assert types == [
            EventType.ACCOUNT_SEEDED,
            EventType.BATCH_COMMITTED,
            EventType.BATCH_COMMITTED,
            EventType.PROOF_GENERATED,
            EventType.PROOF_VERIFIED,
        ]
        assert rollup.events.verify_integrity()

    def test_batch_event_details(self):
        rollup = scenario_rollup()
        event = rollup.events.get_events_by_type(EventType.BATCH_COMMITTED)[1]
        assert event.details["update_index"] == 1
        assert event.details["transactions"] == 1
        assert event.details["post"] == rollup.log[1].post_commitment.hex()

    def test_rejected_proof_event(self):
        rollup = scenario_rollup()
        proof = rollup.generate_fraud_proof(1, 0)
        rollup.verify_fraud_proof(replace(proof, post_commitment=b"\x00" * 32))
        assert len(rollup.events.get_events_by_type(EventType.PROOF_REJECTED)) == 1

    def test_shared_event_logger(self):
        events = EventLogger()
        seen = []
        events.add_callback(seen.append)
        rollup = OptimisticRollup(event_logger=events)
        rollup.process_batch([transfer(BOB, 1)])
        assert rollup.events is events
        assert [e.event_type for e in seen] == [EventType.BATCH_COMMITTED]


class TestDisputes:

    def test_new_update_is_pending(self):
        rollup = scenario_rollup()
        assert rollup.disputes.status(0) == DisputeStatus.PENDING
        assert rollup.disputes.status(1) == DisputeStatus.PENDING

    def test_finalize_unchallenged(self):
        rollup = scenario_rollup()
        rollup.finalize_update(0)
        assert rollup.disputes.status(0) == DisputeStatus.UNCHALLENGED
        assert rollup.disputes.is_settled(0)

    def test_valid_proof_proves_fraud(self):
        rollup = scenario_rollup()
        record = rollup.challenge(rollup.generate_fraud_proof(1, 0))
        assert record.status == DisputeStatus.PROVEN_FRAUDULENT
        assert record.proof.update_index == 1
        assert rollup.events.get_events_by_type(EventType.UPDATE_PROVEN_FRAUDULENT)

    def test_forged_proof_confirms_update(self):
        rollup = scenario_rollup()
        proof = rollup.generate_fraud_proof(1, 0)
        record = rollup.challenge(replace(proof, pre_commitment=b"\x01" * 32))
        assert record.status == DisputeStatus.CONFIRMED
        assert rollup.events.get_events_by_type(EventType.UPDATE_CONFIRMED)

    def test_settled_update_cannot_be_challenged(self):
        rollup = scenario_rollup()
        rollup.finalize_update(1)
        with pytest.raises(DisputeStateError):
            rollup.challenge(rollup.generate_fraud_proof(1, 0))

    def test_double_challenge_rejected(self):
        rollup = scenario_rollup()
        proof = rollup.generate_fraud_proof(1, 0)
        rollup.challenge(proof)
        with pytest.raises(DisputeStateError):
            rollup.challenge(proof)

    def test_challenge_does_not_change_state(self):
        rollup = scenario_rollup()
        before = rollup.state
        rollup.challenge(rollup.generate_fraud_proof(1, 0))
        assert rollup.state == before
        assert len(rollup.log) == 2


class TestDisputeTracker:

    def test_unknown_update(self):
        tracker = DisputeTracker()
        with pytest.raises(DisputeStateError):
            tracker.status(0)

    def test_register_twice(self):
        tracker = DisputeTracker()
        tracker.register(0)
        with pytest.raises(DisputeStateError):
            tracker.register(0)

    def test_resolve_requires_challenge(self):
        tracker = DisputeTracker()
        tracker.register(0)
        with pytest.raises(DisputeStateError):
            tracker.resolve(0, proven=True)

    def test_with_status(self):
        tracker = DisputeTracker()
        for i in range(3):
            tracker.register(i)
        tracker.finalize(1)
        assert tracker.with_status(DisputeStatus.PENDING) == [0, 2]
        assert tracker.with_status(DisputeStatus.UNCHALLENGED) == [1]
        assert 2 in tracker and 3 not in tracker

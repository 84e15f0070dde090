"""
Unit tests for Core Crypto modules.

Tests:
- SHA-256 / SHA3-256 wrappers
- Merkle Tree
- secp256k1 key pairs, addresses and signatures
"""

import pytest
from src.core_crypto.hashing import sha256, sha256_hex, sha3_256, RunningSha256
from src.core_crypto.merkle import MerkleTree, ProofStep, build_merkle_root
from src.core_crypto.signing import (
    CURVE_ORDER, HALF_CURVE_ORDER, KeyPair, address_from_public_key, is_low_s, verify_signature,
)


class TestHashing:
    """Unit tests for hash wrappers."""

    def test_sha256_empty_string(self):
        expected = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        assert sha256_hex(b"") == expected

    def test_sha256_abc(self):
        expected = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        assert sha256_hex(b"abc") == expected

    def test_sha256_parts_are_concatenated(self):
        assert sha256(b"a", b"b", b"c") == sha256(b"abc")

    def test_sha3_256_empty_string(self):
        expected = "a7ffc6f8bf1ed76651c14756a061d662f580ff4de43b49fa82d80a4b80f8434a"
        assert sha3_256(b"").hex() == expected

    def test_running_sha256_matches_one_shot(self):
        acc = RunningSha256()
        acc.update(b"ab")
        acc.update(b"c")
        assert acc.digest() == sha256(b"abc")

    def test_running_sha256_digest_does_not_finalize(self):
        """Taking a digest should not stop the accumulator."""
        acc = RunningSha256()
        acc.update(b"a")
        first = acc.digest()
        acc.update(b"b")
        assert first == sha256(b"a")
        assert acc.digest() == sha256(b"ab")


class TestMerkleTree:
    """Unit tests for Merkle Tree."""

    def test_empty_leaves_rejected(self):
        with pytest.raises(ValueError):
            MerkleTree().build([])

    def test_single_leaf(self):
        tree = MerkleTree()
        root = tree.build([b"only"])
        assert root == MerkleTree.hash_leaf(b"only")
        assert tree.get_proof(0) == []
        assert MerkleTree.verify_proof(b"only", [], root)

    def test_all_proofs_verify_odd_count(self):
        leaves = [b"a", b"b", b"c", b"d", b"e"]
        tree = MerkleTree()
        root = tree.build(leaves)
        for i, leaf in enumerate(leaves):
            assert MerkleTree.verify_proof(leaf, tree.get_proof(i), root)

    def test_all_proofs_verify_even_count(self):
        leaves = [b"tx1", b"tx2", b"tx3", b"tx4"]
        tree = MerkleTree()
        root = tree.build(leaves)
        assert tree.height == 3
        for i, leaf in enumerate(leaves):
            assert MerkleTree.verify_proof(leaf, tree.get_proof(i), root)

    def test_tampered_leaf_rejected(self):
        tree = MerkleTree()
        root = tree.build([b"a", b"b", b"c"])
        assert not MerkleTree.verify_proof(b"x", tree.get_proof(1), root)

    def test_proof_for_wrong_position_rejected(self):
        tree = MerkleTree()
        root = tree.build([b"a", b"b", b"c", b"d"])
        assert not MerkleTree.verify_proof(b"a", tree.get_proof(1), root)

    def test_order_matters(self):
        assert build_merkle_root([b"a", b"b"]) != build_merkle_root([b"b", b"a"])

    def test_leaf_and_node_domains_differ(self):
        """A node hash must not be passable as a leaf hash."""
        left, right = MerkleTree.hash_leaf(b"a"), MerkleTree.hash_leaf(b"b")
        assert MerkleTree.hash_leaf(left + right) != MerkleTree.hash_node(left, right)

    def test_proof_index_out_of_range(self):
        tree = MerkleTree()
        tree.build([b"a", b"b"])
        with pytest.raises(ValueError):
            tree.get_proof(2)
        with pytest.raises(ValueError):
            tree.get_proof(-1)

    def test_proof_before_build(self):
        with pytest.raises(ValueError):
            MerkleTree().get_proof(0)

    def test_proof_steps(self):
        tree = MerkleTree()
        tree.build([b"a", b"b"])
        step = tree.get_proof(1)[0]
        assert isinstance(step, ProofStep)
        assert step.sibling_on_left
        assert step.sibling == MerkleTree.hash_leaf(b"a")


class TestSigning:
    """Unit tests for secp256k1 key pairs."""

    def test_public_key_uncompressed(self):
        keys = KeyPair.from_secret(1)
        data = keys.public_bytes()
        assert len(data) == 65
        assert data[0] == 0x04

    def test_address_derivation(self):
        keys = KeyPair.from_secret(7)
        expected = sha3_256(keys.public_bytes()[1:])[-20:]
        assert keys.address == expected
        assert address_from_public_key(keys.public_key) == expected

    def test_distinct_keys_distinct_addresses(self):
        assert KeyPair.from_secret(1).address != KeyPair.from_secret(2).address

    def test_sign_and_verify(self):
        keys = KeyPair.generate()
        r, s = keys.sign(b"payload")
        assert len(r) == 32 and len(s) == 32
        assert verify_signature(keys.public_key, b"payload", r, s)

    def test_verify_wrong_data(self):
        keys = KeyPair.generate()
        r, s = keys.sign(b"payload")
        assert not verify_signature(keys.public_key, b"other", r, s)

    def test_verify_wrong_key(self):
        r, s = KeyPair.from_secret(3).sign(b"payload")
        assert not verify_signature(KeyPair.from_secret(4).public_key, b"payload", r, s)

    def test_zero_signature_rejected(self):
        keys = KeyPair.generate()
        assert not verify_signature(keys.public_key, b"payload", b"\x00" * 32, b"\x00" * 32)

    def test_verify_only_pair_cannot_sign(self):
        keys = KeyPair.from_public_bytes(KeyPair.generate().public_bytes())
        with pytest.raises(ValueError):
            keys.sign(b"payload")

    def test_signatures_are_low_s(self):
        keys = KeyPair.from_secret(5)
        for i in range(16):
            _, s = keys.sign(b"payload %d" % i)
            assert int.from_bytes(s, "big") <= HALF_CURVE_ORDER
            assert is_low_s(s)

    def test_high_s_twin_still_verifies_but_is_not_canonical(self):
        keys = KeyPair.from_secret(6)
        r, s = keys.sign(b"payload")
        high_s = (CURVE_ORDER - int.from_bytes(s, "big")).to_bytes(32, "big")
        assert verify_signature(keys.public_key, b"payload", r, high_s)
        assert not is_low_s(high_s)

"""
State Commitments

A commitment is a fixed-width digest of an entire account mapping.
Every scheme sorts accounts by address before folding, so two stores
with the same contents commit to the same bytes whatever their
insertion order.

Schemes:
- FoldingCommitment: 64-bit FNV-1a fold, fast, NOT collision resistant
- Sha256Commitment: running SHA-256 fold (default)
- MerkleCommitment: SHA-256 Merkle root with per-account inclusion proofs
"""

from typing import Iterable, List, Optional, Tuple

from ..core_crypto.hashing import RunningSha256, sha256
from ..core_crypto.merkle import MerkleTree, ProofStep
from .accounts import AccountStore
from .types import Account, to_address


# ============================================================================
# Constants
# ============================================================================

FNV_OFFSET_BASIS = 0xcbf29ce484222325
FNV_PRIME = 0x100000001b3
MASK_64 = 0xFFFFFFFFFFFFFFFF

EMPTY_STATE_ROOT = sha256(b'')  # MerkleCommitment of a state with no accounts


def encode_account_leaf(address: bytes, account: Account) -> bytes:
    """address (20) | nonce (8) | balance (32)"""
    return to_address(address) + account.encode()


def _sorted(accounts: Iterable[Tuple[bytes, Account]]) -> List[Tuple[bytes, Account]]:
    return sorted(accounts, key=lambda item: item[0])


# ============================================================================
# Schemes
# ============================================================================

class CommitmentScheme:
    """
    Base class for commitment capabilities.

    Subclasses implement `_fold` over accounts already sorted by address.
    """

    name = "abstract"
    digest_size = 0

    def commit(self, accounts: Iterable[Tuple[bytes, Account]]) -> bytes:
        """Commit to (address, account) pairs in any iteration order."""
        return self._fold(_sorted(accounts))

    def _fold(self, accounts: List[Tuple[bytes, Account]]) -> bytes:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class FoldingCommitment(CommitmentScheme):
    """
    64-bit FNV-1a over every account leaf.

    Deterministic across processes (unlike the builtin hash()), which is
    all replay needs. Use only where fraud proofs carry no economic weight.
    """

    name = "fnv1a-64"
    digest_size = 8

    def _fold(self, accounts):
        acc = FNV_OFFSET_BASIS
        for address, account in accounts:
            for byte in encode_account_leaf(address, account):
                acc ^= byte
                acc = (acc * FNV_PRIME) & MASK_64
        return acc.to_bytes(self.digest_size, 'big')


class Sha256Commitment(CommitmentScheme):
    """Fold address, nonce and balance of each account into one SHA-256."""

    name = "sha256-fold"
    digest_size = 32

    def _fold(self, accounts):
        acc = RunningSha256()
        for address, account in accounts:
            acc.update(encode_account_leaf(address, account))
        return acc.digest()


class MerkleCommitment(CommitmentScheme):
    """
    Merkle root with one leaf per account, leaves in address order.

    Unlike the folding schemes it can prove a single account's value
    against a commitment without revealing the rest of the state.
    """

    name = "sha256-merkle"
    digest_size = 32

    def _fold(self, accounts):
        if not accounts:
            return EMPTY_STATE_ROOT
        return MerkleTree().build([encode_account_leaf(a, acc) for a, acc in accounts])

    def prove_account(self, state: AccountStore, address: bytes) -> Optional[List[ProofStep]]:
        """
        Inclusion proof for one account.

        Returns:
            The authentication path, or None if the address has no account
        """
        accounts = state.accounts_sorted()
        addresses = [a for a, _ in accounts]
        if address not in addresses:
            return None
        tree = MerkleTree()
        tree.build([encode_account_leaf(a, acc) for a, acc in accounts])
        return tree.get_proof(addresses.index(address))

    @staticmethod
    def verify_account(address: bytes, account: Account,
                       proof: List[ProofStep], commitment: bytes) -> bool:
        """Check that `account` is what `commitment` holds for `address`."""
        return MerkleTree.verify_proof(encode_account_leaf(address, account), proof, commitment)


DEFAULT_SCHEME = Sha256Commitment()


def compute_commitment(state: AccountStore, scheme: Optional[CommitmentScheme] = None) -> bytes:
    """Commitment of an account store under `scheme` (default SHA-256 fold)."""
    return (scheme or DEFAULT_SCHEME).commit(state.accounts_sorted())

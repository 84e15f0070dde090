"""
Merkle Tree Implementation

Hash tree over an ordered list of leaves:
- Leaf nodes hash the leaf data with a 0x00 prefix
- Internal nodes hash their two children with a 0x01 prefix
- The root summarizes every leaf and its position

Features:
- Odd leaf duplication (last node duplicated when a layer is odd)
- Inclusion proofs (authentication path from leaf to root)
- Proof verification without the tree

Used in: MerkleCommitment (one leaf per account, sorted by address)
"""

from typing import List, NamedTuple, Optional

from .hashing import sha256

LEAF_PREFIX = b'\x00'
NODE_PREFIX = b'\x01'


class ProofStep(NamedTuple):
    """One sibling on the path to the root."""
    sibling: bytes
    sibling_on_left: bool


class MerkleTree:
    """
    Merkle Tree using SHA-256 with domain-separated leaves and nodes.

    Example:
        >>> tree = MerkleTree()
        >>> root = tree.build([b"a", b"b", b"c"])
        >>> MerkleTree.verify_proof(b"b", tree.get_proof(1), root)
        True
    """

    def __init__(self):
        self._leaf_count = 0
        self._layers: List[List[bytes]] = []

    @staticmethod
    def hash_leaf(data: bytes) -> bytes:
        return sha256(LEAF_PREFIX, data)

    @staticmethod
    def hash_node(left: bytes, right: bytes) -> bytes:
        return sha256(NODE_PREFIX, left, right)

    def build(self, leaves: List[bytes]) -> bytes:
        """
        Build the tree bottom-up.

        Args:
            leaves: Raw leaf data in tree order

        Returns:
            32-byte root hash

        Raises:
            ValueError: If leaves is empty
        """
        if not leaves:
            raise ValueError("Cannot build Merkle tree with no leaves")

        self._leaf_count = len(leaves)
        layer = [self.hash_leaf(leaf) for leaf in leaves]
        self._layers = [layer]

        while len(layer) > 1:
            if len(layer) % 2 == 1:
                layer = layer + [layer[-1]]
            layer = [
                self.hash_node(layer[i], layer[i + 1])
                for i in range(0, len(layer), 2)
            ]
            self._layers.append(layer)

        return self.root

    @property
    def root(self) -> Optional[bytes]:
        return self._layers[-1][0] if self._layers else None

    @property
    def leaf_count(self) -> int:
        return self._leaf_count

    @property
    def height(self) -> int:
        return len(self._layers)

    def get_proof(self, index: int) -> List[ProofStep]:
        """
        Authentication path for the leaf at `index`, leaf to root.

        Raises:
            ValueError: If the tree is not built or index is out of range
        """
        if not self._layers:
            raise ValueError("Tree has not been built yet")
        if not 0 <= index < self._leaf_count:
            raise ValueError(f"Index {index} out of range [0, {self._leaf_count - 1}]")

        proof = []
        position = index
        for layer in self._layers[:-1]:
            if position % 2 == 0:
                # right sibling, or self when the layer is odd
                sibling_index = position + 1 if position + 1 < len(layer) else position
                proof.append(ProofStep(layer[sibling_index], False))
            else:
                proof.append(ProofStep(layer[position - 1], True))
            position //= 2
        return proof

    @staticmethod
    def verify_proof(leaf_data: bytes, proof: List[ProofStep], root: bytes) -> bool:
        """Recompute the root from a leaf and its path and compare."""
        current = MerkleTree.hash_leaf(leaf_data)
        for sibling, sibling_on_left in proof:
            if sibling_on_left:
                current = MerkleTree.hash_node(sibling, current)
            else:
                current = MerkleTree.hash_node(current, sibling)
        return current == root

    def __repr__(self) -> str:
        if not self._layers:
            return "MerkleTree(empty)"
        return f"MerkleTree(leaves={self._leaf_count}, height={self.height}, root={self.root.hex()[:16]}...)"


def build_merkle_root(leaves: List[bytes]) -> bytes:
    """Build a tree and return only its root."""
    return MerkleTree().build(leaves)

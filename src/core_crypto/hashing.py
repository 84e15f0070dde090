"""
Hash Primitives

Thin wrappers over the `cryptography` hash implementations so the rest
of the code base works with plain bytes in and bytes out.

- sha256: commitments, Merkle nodes, ECDSA message digests
- sha3_256: address derivation from public keys
"""

from cryptography.hazmat.primitives import hashes


def _digest(algorithm: hashes.HashAlgorithm, *parts: bytes) -> bytes:
    h = hashes.Hash(algorithm)
    for part in parts:
        h.update(part)
    return h.finalize()


def sha256(*parts: bytes) -> bytes:
    """
    SHA-256 over the concatenation of `parts`.

    Returns:
        32-byte digest
    """
    return _digest(hashes.SHA256(), *parts)


def sha256_hex(*parts: bytes) -> str:
    """SHA-256 as a 64-character hex string."""
    return sha256(*parts).hex()


def sha3_256(*parts: bytes) -> bytes:
    """SHA3-256 over the concatenation of `parts`."""
    return _digest(hashes.SHA3_256(), *parts)


class RunningSha256:
    """
    Incremental SHA-256 accumulator.

    Example:
        >>> acc = RunningSha256()
        >>> acc.update(b"a")
        >>> acc.update(b"bc")
        >>> acc.digest() == sha256(b"abc")
        True
    """

    def __init__(self):
        self._hash = hashes.Hash(hashes.SHA256())

    def update(self, data: bytes) -> None:
        self._hash.update(data)

    def digest(self) -> bytes:
        """Finalize a copy so the accumulator can keep absorbing data."""
        return self._hash.copy().finalize()

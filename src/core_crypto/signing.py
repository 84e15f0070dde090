"""
ECDSA Key Pairs and Addresses

secp256k1 ECDSA over SHA-256, using the `cryptography` package.

- Key pairs with uncompressed public key export
- Address derivation: last 20 bytes of SHA3-256(public key without 0x04)
- Raw (r, s) signing and verification as 32-byte big-endian words
- Low-s normalization so each signature has one encoding

Signatures are randomized (no RFC 6979), so signing the same payload
twice gives different (r, s) pairs; both verify.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from .hashing import sha3_256


# Constants
CURVE = ec.SECP256K1()
ADDRESS_SIZE = 20
SCALAR_SIZE = 32
CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
HALF_CURVE_ORDER = CURVE_ORDER // 2


def public_key_bytes(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Uncompressed SEC1 point (65 bytes, 0x04 prefix)."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint
    )


def address_from_public_key(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Derive the 20-byte account address of a public key."""
    return sha3_256(public_key_bytes(public_key)[1:])[-ADDRESS_SIZE:]


@dataclass
class KeyPair:
    """secp256k1 key pair; private_key is None for verify-only pairs."""
    private_key: Optional[ec.EllipticCurvePrivateKey]
    public_key: ec.EllipticCurvePublicKey

    @classmethod
    def generate(cls) -> 'KeyPair':
        private_key = ec.generate_private_key(CURVE)
        return cls(private_key, private_key.public_key())

    @classmethod
    def from_secret(cls, secret: int) -> 'KeyPair':
        """Deterministic key pair from a private scalar (tests, fixtures)."""
        private_key = ec.derive_private_key(secret, CURVE)
        return cls(private_key, private_key.public_key())

    @classmethod
    def from_public_bytes(cls, data: bytes) -> 'KeyPair':
        public_key = ec.EllipticCurvePublicKey.from_encoded_point(CURVE, data)
        return cls(None, public_key)

    def public_bytes(self) -> bytes:
        return public_key_bytes(self.public_key)

    @property
    def address(self) -> bytes:
        return address_from_public_key(self.public_key)

    def sign(self, data: bytes) -> Tuple[bytes, bytes]:
        """
        Sign data (hashed with SHA-256 by the signer).

        Returns:
            (r, s) as 32-byte big-endian words, s normalized to the low half
            of the curve order

        Raises:
            ValueError: If this is a verify-only key pair
        """
        if self.private_key is None:
            raise ValueError("Private key required for signing")
        der = self.private_key.sign(data, ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        if s > HALF_CURVE_ORDER:
            s = CURVE_ORDER - s
        return r.to_bytes(SCALAR_SIZE, 'big'), s.to_bytes(SCALAR_SIZE, 'big')


def is_low_s(s: bytes) -> bool:
    """
    Check that s is in the lower half of the curve order.

    (r, s) and (r, n - s) verify alike; only the low form is canonical.
    """
    return 0 < int.from_bytes(s, 'big') <= HALF_CURVE_ORDER


def verify_signature(public_key: ec.EllipticCurvePublicKey, data: bytes,
                     r: bytes, s: bytes) -> bool:
    """
    Check an (r, s) signature over data.

    Returns:
        True if valid, False otherwise (including zero or malformed r/s)
    """
    r_int = int.from_bytes(r, 'big')
    s_int = int.from_bytes(s, 'big')
    if r_int == 0 or s_int == 0:
        return False
    try:
        public_key.verify(
            encode_dss_signature(r_int, s_int),
            data,
            ec.ECDSA(hashes.SHA256())
        )
        return True
    except InvalidSignature:
        return False

"""
Signer Recovery

Maps a transaction to the address that signed it. The live batch path
and every fraud-proof replay must be given the same implementation, or
the two will compute different states.

Implementations:
- FixedSignerRecovery: every transaction comes from one address
- KeyringSignerRecovery: ECDSA secp256k1 against a set of known keys
"""

import logging
from typing import Dict, Iterable, Protocol

from cryptography.hazmat.primitives.asymmetric import ec

from ..core_crypto.signing import KeyPair, address_from_public_key, is_low_s, verify_signature
from .errors import InvalidSignatureError
from .types import Signature, Transaction, ZERO_ADDRESS, to_address

logger = logging.getLogger(__name__)

SIGNATURE_V = 27  # The only v accepted; no public-key recovery id is used


class SignerRecovery(Protocol):
    """
    Capability that recovers the sender of a transaction.

    Implementations MUST:
    - Be deterministic for the same transaction
    - Raise InvalidSignatureError when no sender can be recovered
    """

    def recover(self, transaction: Transaction) -> bytes:
        ...


class FixedSignerRecovery:
    """
    Attributes every transaction to one sender, ignoring the signature.

    With the default all-zero address every transaction debits the
    zero account.
    """

    def __init__(self, address: bytes = ZERO_ADDRESS):
        self._address = to_address(address)

    def recover(self, transaction: Transaction) -> bytes:
        return self._address

    def __repr__(self) -> str:
        return f"FixedSignerRecovery({self._address.hex()})"


class KeyringSignerRecovery:
    """
    ECDSA recovery against registered public keys.

    The `cryptography` package cannot recover a public key from (r, s)
    alone, so the signer is the registered key whose verification of
    (r, s) over the transaction's signing payload succeeds.

    Example:
        >>> keys = KeyPair.generate()
        >>> keyring = KeyringSignerRecovery([keys.public_key])
        >>> tx = TransactionSigner(keys).sign(Transaction(recipient=b'\\x01' * 20))
        >>> keyring.recover(tx) == keys.address
        True
    """

    def __init__(self, public_keys: Iterable[ec.EllipticCurvePublicKey] = ()):
        self._keys: Dict[bytes, ec.EllipticCurvePublicKey] = {}
        for public_key in public_keys:
            self.register(public_key)

    def register(self, public_key: ec.EllipticCurvePublicKey) -> bytes:
        """Add a key; returns its address."""
        address = address_from_public_key(public_key)
        self._keys[address] = public_key
        return address

    def __len__(self) -> int:
        return len(self._keys)

    def recover(self, transaction: Transaction) -> bytes:
        """
        Find the registered key that signed the transaction.

        Only the canonical encoding is accepted (v == 27, low s), so a
        signed transaction cannot be re-encoded into a second transaction
        that recovers the same sender.

        Returns:
            Address of the signer

        Raises:
            InvalidSignatureError: If v or s is not canonical, or no
                registered key verifies the signature
        """
        signature = transaction.signature
        if signature.v != SIGNATURE_V:
            raise InvalidSignatureError(f"Invalid signature v value: {signature.v}")
        if not is_low_s(signature.s):
            raise InvalidSignatureError("Signature s value is not canonical")

        payload = transaction.signing_payload()
        # sorted so a (theoretical) double match resolves the same everywhere
        for address in sorted(self._keys):
            if verify_signature(self._keys[address], payload, signature.r, signature.s):
                return address

        logger.warning("No registered key verifies %s", transaction)
        raise InvalidSignatureError("Signature does not match any registered key")

    def __repr__(self) -> str:
        return f"KeyringSignerRecovery(keys={len(self._keys)})"


class TransactionSigner:
    """Produces signed copies of transactions for one key pair."""

    def __init__(self, key_pair: KeyPair):
        self._key_pair = key_pair

    @property
    def address(self) -> bytes:
        return self._key_pair.address

    def sign(self, transaction: Transaction) -> Transaction:
        r, s = self._key_pair.sign(transaction.signing_payload())
        return transaction.with_signature(Signature(v=SIGNATURE_V, r=r, s=s))

"""
Rollup Data Types

Defines the records the engine passes around:
- Addresses (20 bytes) and 32-byte big-endian quantities
- Accounts (nonce + balance)
- Signatures and transactions

Security features:
- Immutable transactions and signatures (frozen dataclass)
- Width validation on construction
- Canonical byte encoding used for signing and commitments
"""

import json
import struct
from dataclasses import dataclass, field, replace
from typing import Optional, Dict, Any


# ============================================================================
# Constants
# ============================================================================

ADDRESS_SIZE = 20  # Bytes in an account address
WORD_SIZE = 32  # Bytes in a balance / value quantity
MAX_NONCE = 2 ** 64 - 1  # Nonces are unsigned 64-bit counters
MAX_GAS_LIMIT = 2 ** 64 - 1
DEFAULT_GAS_LIMIT = 21000  # Plain value transfer

ZERO_ADDRESS = b'\x00' * ADDRESS_SIZE
ZERO_WORD = b'\x00' * WORD_SIZE


# ============================================================================
# Width Helpers
# ============================================================================

def _check_width(value: bytes, size: int, name: str) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise ValueError(f"{name} must be bytes, got {type(value).__name__}")
    if len(value) != size:
        raise ValueError(f"{name} must be {size} bytes, got {len(value)}")
    return bytes(value)


def to_address(value: bytes) -> bytes:
    """Validate and normalize a 20-byte address."""
    return _check_width(value, ADDRESS_SIZE, "Address")


def to_word(value: bytes) -> bytes:
    """Validate and normalize a 32-byte quantity."""
    return _check_width(value, WORD_SIZE, "Word")


def u256(value: int) -> bytes:
    """
    Encode a non-negative integer as a 32-byte big-endian quantity.

    Raises:
        ValueError: If value is negative or does not fit in 256 bits
    """
    if value < 0 or value >= 2 ** 256:
        raise ValueError(f"Value {value} out of range for 256 bits")
    return value.to_bytes(WORD_SIZE, 'big')


def u256_to_int(word: bytes) -> int:
    """Decode a 32-byte big-endian quantity."""
    return int.from_bytes(to_word(word), 'big')


def address_from_byte(fill: int) -> bytes:
    """Address with every byte set to `fill` (0x01...01 style)."""
    return bytes([fill]) * ADDRESS_SIZE


# ============================================================================
# Account
# ============================================================================

@dataclass
class Account:
    """
    Ledger entry for one address.

    Accounts are owned by an AccountStore and mutated only through it.
    """
    nonce: int = 0
    balance: bytes = ZERO_WORD

    def __post_init__(self):
        if not 0 <= self.nonce <= MAX_NONCE:
            raise ValueError(f"Nonce {self.nonce} out of range for 64 bits")
        self.balance = to_word(self.balance)

    @property
    def balance_int(self) -> int:
        return int.from_bytes(self.balance, 'big')

    def copy(self) -> 'Account':
        return replace(self)

    def encode(self) -> bytes:
        """nonce (8 bytes, big-endian) followed by balance (32 bytes)."""
        return self.nonce.to_bytes(8, 'big') + self.balance

    def to_dict(self) -> Dict[str, Any]:
        return {'nonce': self.nonce, 'balance': self.balance.hex()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        return cls(nonce=data['nonce'], balance=bytes.fromhex(data['balance']))


# ============================================================================
# Transactions (Immutable)
# ============================================================================

@dataclass(frozen=True)
class Signature:
    """ECDSA signature components in the (v, r, s) form."""
    v: int = 0
    r: bytes = ZERO_WORD
    s: bytes = ZERO_WORD

    def __post_init__(self):
        if not 0 <= self.v <= 255:
            raise ValueError(f"Signature v must fit in one byte, got {self.v}")
        object.__setattr__(self, 'r', to_word(self.r))
        object.__setattr__(self, 's', to_word(self.s))

    def to_dict(self) -> Dict[str, Any]:
        return {'v': self.v, 'r': self.r.hex(), 's': self.s.hex()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Signature':
        return cls(
            v=data['v'],
            r=bytes.fromhex(data['r']),
            s=bytes.fromhex(data['s']),
        )


@dataclass(frozen=True)
class Transaction:
    """
    Immutable rollup transaction.

    recipient=None denotes a contract creation, which the engine accepts
    but does not execute (no balance change, the sender nonce still moves).
    """
    nonce: int = 0
    gas_price: bytes = ZERO_WORD
    gas_limit: int = DEFAULT_GAS_LIMIT
    recipient: Optional[bytes] = None
    value: bytes = ZERO_WORD
    payload: bytes = b''
    signature: Signature = field(default_factory=Signature)

    def __post_init__(self):
        if not 0 <= self.nonce <= MAX_NONCE:
            raise ValueError(f"Nonce {self.nonce} out of range for 64 bits")
        if not 0 <= self.gas_limit <= MAX_GAS_LIMIT:
            raise ValueError(f"Gas limit {self.gas_limit} out of range for 64 bits")
        object.__setattr__(self, 'gas_price', to_word(self.gas_price))
        object.__setattr__(self, 'value', to_word(self.value))
        object.__setattr__(self, 'payload', bytes(self.payload))
        if self.recipient is not None:
            object.__setattr__(self, 'recipient', to_address(self.recipient))

    @property
    def is_contract_creation(self) -> bool:
        return self.recipient is None

    def signing_payload(self) -> bytes:
        """
        Canonical encoding of every field except the signature.

        Layout:
            nonce (8) | gas_price (32) | gas_limit (8) | has_recipient (1) |
            recipient (20 or 0) | value (32) | payload length (4) | payload
        """
        recipient = self.recipient or b''
        return (
            self.nonce.to_bytes(8, 'big') +
            self.gas_price +
            self.gas_limit.to_bytes(8, 'big') +
            (b'\x01' if self.recipient is not None else b'\x00') +
            recipient +
            self.value +
            struct.pack('>I', len(self.payload)) +
            self.payload
        )

    def with_signature(self, signature: Signature) -> 'Transaction':
        return replace(self, signature=signature)

    def to_dict(self) -> Dict[str, Any]:
        """Convert transaction to dictionary for serialization."""
        return {
            'nonce': self.nonce,
            'gas_price': self.gas_price.hex(),
            'gas_limit': self.gas_limit,
            'recipient': self.recipient.hex() if self.recipient is not None else None,
            'value': self.value.hex(),
            'payload': self.payload.hex(),
            'signature': self.signature.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Create transaction from dictionary."""
        recipient = data.get('recipient')
        return cls(
            nonce=data['nonce'],
            gas_price=bytes.fromhex(data['gas_price']),
            gas_limit=data['gas_limit'],
            recipient=bytes.fromhex(recipient) if recipient is not None else None,
            value=bytes.fromhex(data['value']),
            payload=bytes.fromhex(data.get('payload', '')),
            signature=Signature.from_dict(data['signature']),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, json_str: str) -> 'Transaction':
        return cls.from_dict(json.loads(json_str))

    def __str__(self) -> str:
        target = self.recipient.hex()[:8] + "..." if self.recipient else "<create>"
        return f"Tx(nonce={self.nonce}, to={target}, value={int.from_bytes(self.value, 'big')})"


def transfer(recipient: bytes, amount: int, nonce: int = 0, **kwargs) -> Transaction:
    """Build an unsigned value-transfer transaction."""
    return Transaction(nonce=nonce, recipient=recipient, value=u256(amount), **kwargs)

"""
Account Store

Owns the address -> account mapping of a rollup state.

Balance arithmetic is byte-local and saturating: every one of the 32
balance bytes is updated on its own, clamping at 0 and 255, with no
borrow or carry between bytes. A transfer therefore never fails for
lack of funds. This is what lets an invalid transfer be accepted by the
sequencer and proven fraudulent afterwards.
"""

from typing import Dict, Iterator, List, Optional, Tuple

from .errors import NonceOverflowError
from .types import Account, MAX_NONCE, WORD_SIZE, to_address, to_word


def saturating_sub(a: int, b: int) -> int:
    """Byte subtraction clamped at 0."""
    return max(a - b, 0)


def saturating_add(a: int, b: int) -> int:
    """Byte addition clamped at 255."""
    return min(a + b, 255)


def bytewise_sub(balance: bytes, value: bytes) -> bytes:
    """
    Per-byte saturating subtraction (no borrow).

    Args:
        balance: 32-byte balance to debit
        value: 32-byte amount

    Returns:
        New 32-byte balance
    """
    return bytes(saturating_sub(balance[i], value[i]) for i in range(WORD_SIZE))


def bytewise_add(balance: bytes, value: bytes) -> bytes:
    """
    Per-byte saturating addition (no carry).

    Args:
        balance: 32-byte balance to credit
        value: 32-byte amount

    Returns:
        New 32-byte balance
    """
    return bytes(saturating_add(balance[i], value[i]) for i in range(WORD_SIZE))


class AccountStore:
    """
    Mapping of address to account with lazily created defaults.

    Example:
        >>> store = AccountStore()
        >>> store.get_or_create(b'\\x01' * 20).nonce
        0
    """

    def __init__(self, accounts: Optional[Dict[bytes, Account]] = None):
        self._accounts: Dict[bytes, Account] = {}
        for address, account in (accounts or {}).items():
            self.set_account(address, account)

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, address: bytes) -> bool:
        return address in self._accounts

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._accounts)

    def __eq__(self, other) -> bool:
        if not isinstance(other, AccountStore):
            return NotImplemented
        return self._accounts == other._accounts

    def get(self, address: bytes) -> Optional[Account]:
        """Get an account without creating it."""
        return self._accounts.get(address)

    def get_or_create(self, address: bytes) -> Account:
        """
        Get the account for an address, materializing a zero account
        (nonce 0, balance 0) on first access.
        """
        address = to_address(address)
        account = self._accounts.get(address)
        if account is None:
            account = Account()
            self._accounts[address] = account
        return account

    def set_account(self, address: bytes, account: Account) -> None:
        """Insert or replace an account (used for seeding genesis)."""
        self._accounts[to_address(address)] = account.copy()

    def apply_transfer(self, sender: bytes, recipient: bytes, value: bytes) -> None:
        """
        Move `value` from sender to recipient with byte-local saturation.

        Both accounts are created if missing. Both sides are computed from
        the balances as they were before the transfer and the recipient is
        written last, so a self-transfer keeps only the saturating add.
        """
        value = to_word(value)
        from_account = self.get_or_create(sender).copy()
        to_account = self.get_or_create(recipient).copy()

        from_account.balance = bytewise_sub(from_account.balance, value)
        to_account.balance = bytewise_add(to_account.balance, value)

        self._accounts[to_address(sender)] = from_account
        self._accounts[to_address(recipient)] = to_account

    def increment_nonce(self, address: bytes) -> int:
        """
        Bump the nonce of an account, creating it if needed.

        Returns:
            The new nonce

        Raises:
            NonceOverflowError: If the nonce is already at 2**64 - 1
        """
        account = self.get_or_create(address)
        if account.nonce >= MAX_NONCE:
            raise NonceOverflowError(f"Nonce overflow for {address.hex()}")
        account.nonce += 1
        return account.nonce

    def accounts_sorted(self) -> List[Tuple[bytes, Account]]:
        """All accounts in ascending address order."""
        return sorted(self._accounts.items(), key=lambda item: item[0])

    def copy(self) -> 'AccountStore':
        """Deep copy; the result shares no account objects with this store."""
        return AccountStore(self._accounts)

    def replace_with(self, other: 'AccountStore') -> None:
        """Take over the contents of another store, keeping this object."""
        self._accounts = other.copy()._accounts

    def to_dict(self) -> Dict[str, Dict]:
        return {address.hex(): account.to_dict() for address, account in self.accounts_sorted()}

    @classmethod
    def from_dict(cls, data: Dict[str, Dict]) -> 'AccountStore':
        return cls({
            bytes.fromhex(address): Account.from_dict(account)
            for address, account in data.items()
        })

    def __repr__(self) -> str:
        return f"AccountStore(accounts={len(self._accounts)})"

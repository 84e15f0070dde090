"""
Rollup Error Types

All engine failures derive from RollupError so callers can catch the
whole family at once. Malformed values (wrong byte widths, negative
integers) raise the builtin ValueError instead.
"""


class RollupError(Exception):
    """Base class for rollup engine errors."""
    pass


class InvalidSignatureError(RollupError):
    """
    Raised when the sender of a transaction cannot be recovered.

    Attributes:
        tx_index: Position of the failing transaction inside its batch,
            when known
    """

    def __init__(self, message: str, tx_index: int = None):
        super().__init__(message)
        self.tx_index = tx_index


class ChainValidationError(RollupError):
    """Raised when the update log commitment chain is broken."""
    pass


class NonceOverflowError(RollupError):
    """Raised when an account nonce would exceed 64 bits."""
    pass


class DisputeStateError(RollupError):
    """Raised on an illegal dispute status transition."""
    pass

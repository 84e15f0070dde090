# Rollup Module
"""
Optimistic rollup engine:
- Account store with byte-local saturating balances
- Pluggable state commitments (FNV fold, SHA-256 fold, Merkle root)
- One state transition function shared by live processing and replay
- Batch processing into an append-only, commitment-chained update log
- Fraud proof generation and independent verification

Security features:
- Immutable updates and proofs (frozen dataclass)
- Atomic batches
- Replays on private copies of a log snapshot
"""

# Lazy imports to avoid RuntimeWarning when running module directly
_EXPORTS = {
    'Account': 'types',
    'Signature': 'types',
    'Transaction': 'types',
    'transfer': 'types',
    'u256': 'types',
    'AccountStore': 'accounts',
    'CommitmentScheme': 'commitment',
    'FoldingCommitment': 'commitment',
    'Sha256Commitment': 'commitment',
    'MerkleCommitment': 'commitment',
    'compute_commitment': 'commitment',
    'FixedSignerRecovery': 'signers',
    'KeyringSignerRecovery': 'signers',
    'TransactionSigner': 'signers',
    'apply_transaction': 'transition',
    'StateUpdate': 'batch',
    'UpdateLog': 'batch',
    'BatchProcessor': 'batch',
    'FraudProof': 'fraud',
    'FraudProofGenerator': 'fraud',
    'FraudProofVerifier': 'fraud',
    'FraudDetector': 'fraud',
    'DisputeStatus': 'disputes',
    'DisputeTracker': 'disputes',
    'OptimisticRollup': 'rollup',
    'RollupError': 'errors',
    'InvalidSignatureError': 'errors',
    'ChainValidationError': 'errors',
}


def __getattr__(name):
    """Lazy import to avoid circular import issues."""
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    import importlib
    module = importlib.import_module(f".{_EXPORTS[name]}", __name__)
    return getattr(module, name)


__all__ = list(_EXPORTS)

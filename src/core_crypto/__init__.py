# Core Cryptography Module
"""
Core cryptographic building blocks for the rollup engine:
- SHA-256 / SHA3-256 hashing (via `cryptography`)
- Merkle trees with inclusion proofs
- secp256k1 ECDSA key pairs and address derivation
"""

# Rollup Test Suite
"""
Test suite including:
- Unit tests per module
- Integration tests (whole rollup, signed batches, disputes)
- Security tests (forged signatures, forged proofs, tampered logs)

Run with: pytest
Coverage: coverage run -m pytest && coverage report
"""

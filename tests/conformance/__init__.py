"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the token ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Total supply equals the sum of balances
2. atomicity.py - All-or-nothing operation semantics
3. uniqueness.py - At most one account per (owner, mint)
4. determinism.py - Reproducible addresses and replay
5. concurrency.py - Serialized writers on shared records

These tests use hypothesis for property-based testing.
"""

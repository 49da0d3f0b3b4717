"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending market.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing operation semantics
2. reentrancy.py - Guarded entry points reject nested calls
3. invariants.py - Loan, collateral and custody invariants under interleaving
4. determinism.py - Pure previews, read-only queries, reproducible runs

These tests use hypothesis for property-based testing.
"""

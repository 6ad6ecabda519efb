"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the stable-asset engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_health_invariant.py - No committed operation leaves a borrower unsafe
2. test_atomicity.py - Failed operations leave no trace
3. test_conversions.py - Fixed-point and USD conversions round safely
4. test_solvency.py - Collateral and liquidation keep the population solvent

These tests use hypothesis for property-based testing.
"""

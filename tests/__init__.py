# Material Tracker Test Suite
#
# This package contains:
# - Unit tests for the return ledger and reference numbering (pure functions)
# - API tests against an in-process app (pytest + Flask test client)
#
# Run with: python -m tests.run [smoke|full|unit|api|all]

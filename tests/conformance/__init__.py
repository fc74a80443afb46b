"""
Conformance tests: properties that must hold for every sequence of operations.

- test_atomicity.py: failed operations change nothing
- test_conservation.py: balances sum to zero, supply moves only by mint and burn
- test_idempotency.py: a transaction applies at most once, accrual is idempotent
- test_determinism.py: identical inputs give identical state, replay reproduces state
- test_staking_totals.py: pool total equals the sum of stakes
- test_vesting_bounds.py: claims never exceed the grant
- test_lending_invariants.py: collateral backs debt, liquidation caps hold
"""

"""
Determinism Conformance Tests

INVARIANT: Same inputs produce the same state.

    ∀ operation script S:
        run(S) on fresh protocol A = run(S) on fresh protocol B
        replay(log(run(S))) reproduces balances, records and events

No wall-clock time, randomness or float arithmetic enters any calculation.
"""

from hypothesis import given, settings

from tests.conftest import make_full_protocol, ledger_state
from tests.conformance.operations import script_strategy, run_script


class TestDeterminism:

    @given(script_strategy())
    @settings(max_examples=50, deadline=None)
    def test_same_script_same_state(self, script):
        """
        PROPERTY: Two runs of one script end in identical state.
        """
        first, second = make_full_protocol(), make_full_protocol()
        assert run_script(first, script) == run_script(second, script)
        assert ledger_state(first.ledger) == ledger_state(second.ledger)
        assert [tx.intent_id for tx in first.ledger.transaction_log] == \
            [tx.intent_id for tx in second.ledger.transaction_log]

    @given(script_strategy())
    @settings(max_examples=50, deadline=None)
    def test_replay_reproduces_state(self, script):
        """
        PROPERTY: Replaying the transaction log rebuilds the same state.
        """
        protocol = make_full_protocol()
        run_script(protocol, script)
        replayed = protocol.ledger.replay()
        assert ledger_state(replayed) == ledger_state(protocol.ledger)

    @given(script_strategy())
    @settings(max_examples=50, deadline=None)
    def test_events_follow_the_clock(self, script):
        """
        PROPERTY: Events are published in non-decreasing ledger order.
        """
        protocol = make_full_protocol()
        run_script(protocol, script)
        ledgers = [e.ledger for e in protocol.ledger.events]
        assert ledgers == sorted(ledgers)

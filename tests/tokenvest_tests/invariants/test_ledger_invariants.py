"""
Ledger Invariant Tests using Property-Based Testing

Random sequences of creations, releases, withdrawals and clock moves must
keep the ledger's accounting consistent whatever the outcome of each step.
"""

import pytest
from hypothesis import given, settings, strategies as st

from tokenvest.clock import ManualClock
from tokenvest.exceptions import VestingError
from tokenvest.ledger import VESTING_DURATION, VestingLedger
from tokenvest.token import FungibleToken

OWNER = "0xowner"
BENEFICIARIES = [f"0xbeneficiary{i}" for i in range(5)]
CALLERS = BENEFICIARIES + [OWNER, "0xstranger"]
T0 = 1_700_000_000

create_op = st.tuples(
    st.just("create"),
    st.sampled_from(BENEFICIARIES),
    st.integers(min_value=0, max_value=60 * 86400),
    st.integers(min_value=-10, max_value=600),
)
batch_op = st.tuples(
    st.just("batch"),
    st.lists(
        st.tuples(
            st.sampled_from(BENEFICIARIES),
            st.integers(min_value=0, max_value=60 * 86400),
            st.integers(min_value=1, max_value=400),
        ),
        max_size=4,
    ),
)
release_op = st.tuples(st.just("release"), st.sampled_from(CALLERS), st.sampled_from(BENEFICIARIES))
withdraw_op = st.tuples(st.just("withdraw"), st.integers(min_value=1, max_value=1500))
tick_op = st.tuples(st.just("tick"), st.integers(min_value=0, max_value=120 * 86400))

operations = st.lists(
    st.one_of(create_op, batch_op, release_op, withdraw_op, tick_op),
    max_size=40,
)


def _apply(ledger: VestingLedger, clock: ManualClock, op) -> None:
    kind = op[0]
    if kind == "create":
        _, beneficiary, offset, amount = op
        ledger.create_vesting_schedule(OWNER, beneficiary, T0 + offset, amount)
    elif kind == "batch":
        ledger.create_vesting_schedules(
            OWNER, [(b, T0 + offset, amount) for b, offset, amount in op[1]]
        )
    elif kind == "release":
        ledger.release(op[1], op[2])
    elif kind == "withdraw":
        ledger.withdraw(OWNER, op[1])
    else:
        clock.advance(op[1])


@given(funding=st.integers(min_value=0, max_value=2000), ops=operations)
@settings(max_examples=200, deadline=None)
def test_accounting_invariants_hold(funding, ops):
    clock = ManualClock(start_time=T0)
    token = FungibleToken(name="Prop", symbol="PRP", owner=OWNER)
    token.mint(OWNER, OWNER, 10_000)
    ledger = VestingLedger(custodian=token, owner=OWNER, time_provider=clock.now)
    if funding:
        token.transfer(OWNER, ledger.address, funding)

    ever_released = set()
    created = {}
    for op in ops:
        before = ledger.to_dict()
        try:
            _apply(ledger, clock, op)
        except VestingError:
            after = ledger.to_dict()
            assert after == before, f"rejected {op[0]} mutated state"

        schedules = [ledger.get_vesting_schedule(b) for b in ledger.get_beneficiaries()]
        pending = sum(s.amount_total for s in schedules if not s.released)

        assert ledger.get_vesting_schedules_total_amount() == pending
        assert ledger.get_withdrawable_amount() >= 0
        assert len(set(ledger.get_beneficiaries())) == ledger.get_vesting_schedules_count()

        for s in schedules:
            assert s.amount_total > 0
            # start and amount are immutable once created
            assert created.setdefault(s.beneficiary, (s.start, s.amount_total)) == (
                s.start,
                s.amount_total,
            )
            if s.beneficiary in ever_released:
                assert s.released
            if s.released:
                assert clock.now() >= s.start + VESTING_DURATION
                ever_released.add(s.beneficiary)

    released_total = sum(
        ledger.get_vesting_schedule(b).amount_total for b in ever_released
    )
    assert sum(token.balance_of(b) for b in BENEFICIARIES) == released_total


@pytest.mark.parametrize("amounts", [[100, 200, 300], [1], [250, 250, 250, 250]])
def test_committed_total_equals_created_minus_released(amounts):
    clock = ManualClock(start_time=T0)
    token = FungibleToken(name="Prop", symbol="PRP", owner=OWNER)
    token.mint(OWNER, OWNER, 10_000)
    ledger = VestingLedger(custodian=token, owner=OWNER, time_provider=clock.now)
    token.transfer(OWNER, ledger.address, sum(amounts))

    for beneficiary, amount in zip(BENEFICIARIES, amounts):
        ledger.create_vesting_schedule(OWNER, beneficiary, T0, amount)
    assert ledger.get_vesting_schedules_total_amount() == sum(amounts)

    clock.advance(VESTING_DURATION)
    ledger.release(OWNER, BENEFICIARIES[0])
    assert ledger.get_vesting_schedules_total_amount() == sum(amounts) - amounts[0]
    assert ledger.get_withdrawable_amount() == 0

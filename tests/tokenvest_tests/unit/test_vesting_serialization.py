"""
Tests for ledger snapshots (to_dict / from_dict).
"""

import json

import pytest

from conftest import ALICE, BASE_TIME, BOB, DAY, OWNER
from tokenvest.exceptions import LedgerInvariantError
from tokenvest.ledger import VestingLedger
from tokenvest.token import FungibleToken


def test_snapshot_round_trip_through_json(scheduled_ledger, token, clock):
    clock.set(BASE_TIME + 270 * DAY)
    scheduled_ledger.release(ALICE, ALICE)

    data = json.loads(json.dumps(scheduled_ledger.to_dict()))
    restored = VestingLedger.from_dict(data, custodian=token, time_provider=clock.now)

    assert restored.address == scheduled_ledger.address
    assert restored.owner == OWNER
    assert restored.get_beneficiaries() == scheduled_ledger.get_beneficiaries()
    assert restored.get_vesting_schedules_total_amount() == 500
    assert restored.get_withdrawable_amount() == 400
    assert restored.get_vesting_schedule(ALICE).released is True
    assert len(restored.events) == len(scheduled_ledger.events)

    assert restored.release(BOB, BOB) == 200


def test_tampered_committed_total_is_rejected(scheduled_ledger, token):
    data = scheduled_ledger.to_dict()
    data["committed_total"] = 1

    with pytest.raises(LedgerInvariantError, match="does not match"):
        VestingLedger.from_dict(data, custodian=token)


def test_duplicate_beneficiary_in_snapshot_is_rejected(scheduled_ledger, token):
    data = scheduled_ledger.to_dict()
    data["schedules"].append(dict(data["schedules"][0]))
    data["committed_total"] += data["schedules"][0]["amount_total"]

    with pytest.raises(LedgerInvariantError, match="duplicate"):
        VestingLedger.from_dict(data, custodian=token)


@pytest.mark.parametrize(
    "field,value",
    [("amount_total", 0), ("amount_total", -100), ("start", -1), ("beneficiary", "")],
)
def test_invalid_schedule_row_is_rejected(scheduled_ledger, token, field, value):
    data = scheduled_ledger.to_dict()
    original = data["schedules"][0]["amount_total"]
    data["schedules"][0][field] = value
    if field == "amount_total":
        data["committed_total"] += value - original

    with pytest.raises(LedgerInvariantError, match="invalid schedule"):
        VestingLedger.from_dict(data, custodian=token)


def test_snapshot_bound_to_its_token(scheduled_ledger):
    other = FungibleToken(name="Other", symbol="OT", owner=OWNER)
    with pytest.raises(LedgerInvariantError, match="different token"):
        VestingLedger.from_dict(scheduled_ledger.to_dict(), custodian=other)

"""
Test configuration and fixtures
"""
import logging

import pytest

from tokenvest.clock import SECONDS_PER_DAY, ManualClock
from tokenvest.ledger import VestingLedger
from tokenvest.token import FungibleToken

BASE_TIME = 1638102492
DAY = SECONDS_PER_DAY

OWNER = "0xowner00000000000000000000000000000000001"
ALICE = "0xa11ce00000000000000000000000000000000002"
BOB = "0xb0b0000000000000000000000000000000000003"
CAROL = "0xca201000000000000000000000000000000000004"
MALLORY = "0x3a11020000000000000000000000000000000005"


@pytest.fixture(autouse=True)
def reset_tokenvest_logger():
    """Drop handlers installed by CLI runs so later tests never log to closed streams."""
    yield
    logger = logging.getLogger("tokenvest")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def clock():
    """Manual clock starting at the base vesting time"""
    return ManualClock(start_time=BASE_TIME)


@pytest.fixture
def token():
    """Token with the whole supply minted to the owner"""
    tok = FungibleToken(name="Test Token", symbol="TT", owner=OWNER)
    tok.mint(OWNER, OWNER, 1_000_000)
    return tok


@pytest.fixture
def ledger(token, clock):
    """Fresh ledger with no funds"""
    return VestingLedger(custodian=token, owner=OWNER, time_provider=clock.now)


@pytest.fixture
def funded_ledger(ledger, token):
    """Ledger holding 1000 tokens"""
    token.transfer(OWNER, ledger.address, 1000)
    return ledger


@pytest.fixture
def scheduled_ledger(funded_ledger):
    """Funded ledger with three schedules: A(100), B(200), C(300, +30d)"""
    funded_ledger.create_vesting_schedules(
        OWNER,
        [
            (ALICE, BASE_TIME, 100, False),
            (BOB, BASE_TIME, 200, False),
            (CAROL, BASE_TIME + 30 * DAY, 300, False),
        ],
    )
    return funded_ledger

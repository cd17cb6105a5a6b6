"""
tokenvest - Cliff Vesting Token Ledger

Tracks vesting schedules for a fixed set of beneficiaries against funds held
by an external custodian.

Main Components:
- VestingLedger: schedule creation, release and withdrawal
- FundsCustodian: protocol for the funds-holding collaborator
- FungibleToken: in-memory token usable as a custodian
- ManualClock: deterministic time provider
"""

from .clock import ManualClock, system_time
from .custodian import FundsCustodian
from .exceptions import (
    AlreadyReleasedError,
    DuplicateScheduleError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidScheduleError,
    LedgerInvariantError,
    ReentrantCallError,
    ScheduleNotFoundError,
    TokenError,
    TooEarlyError,
    TransferFailedError,
    UnauthorizedError,
    VestingError,
)
from .ledger import VESTING_DURATION, LedgerEvent, ScheduleRequest, VestingLedger, VestingSchedule
from .token import FungibleToken

__version__ = "0.1.0"

__all__ = [
    "VestingLedger",
    "VestingSchedule",
    "ScheduleRequest",
    "LedgerEvent",
    "VESTING_DURATION",
    "FundsCustodian",
    "FungibleToken",
    "ManualClock",
    "system_time",
    # Exceptions
    "VestingError",
    "InvalidAmountError",
    "InvalidScheduleError",
    "DuplicateScheduleError",
    "InsufficientFundsError",
    "UnauthorizedError",
    "ScheduleNotFoundError",
    "AlreadyReleasedError",
    "TooEarlyError",
    "ReentrantCallError",
    "TransferFailedError",
    "TokenError",
    "LedgerInvariantError",
]

"""
Cliff-vesting token ledger.

Tracks one vesting schedule per beneficiary against funds held by an external
custodian:
- Owner creates schedules, singly or as an all-or-nothing batch
- Beneficiary (or owner) releases the full amount once the cliff has passed
- Owner withdraws funds not committed to pending schedules

Security features:
- Explicit caller authorization on every mutating call
- State is mutated before the custodian transfer, which is always the last effect
- Non-reentrant mutating entry points
- Snapshot rollback when any step of an operation fails, transfers included
"""

from __future__ import annotations

import dataclasses
import hashlib
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, Mapping, Sequence

from .clock import SECONDS_PER_DAY, TimeProvider, system_time
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
    TooEarlyError,
    TransferFailedError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

# Fixed cliff: 270 days (~9 months)
VESTING_DURATION = 270 * SECONDS_PER_DAY


@dataclass
class VestingSchedule:
    """Cliff vesting schedule for a single beneficiary."""

    beneficiary: str
    start: int
    amount_total: int
    released: bool = False

    @classmethod
    def empty(cls) -> "VestingSchedule":
        """Zero record returned for beneficiaries without a schedule."""
        return cls(beneficiary="", start=0, amount_total=0, released=False)

    def vesting_date(self, vesting_duration: int = VESTING_DURATION) -> int:
        return self.start + vesting_duration

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VestingSchedule":
        return cls(
            beneficiary=str(data["beneficiary"]).lower(),
            start=int(data["start"]),
            amount_total=int(data["amount_total"]),
            released=bool(data.get("released", False)),
        )


@dataclass(frozen=True)
class ScheduleRequest:
    """One entry of a schedule creation batch."""

    beneficiary: str
    start: int
    amount: int

    @classmethod
    def coerce(cls, entry: Any) -> "ScheduleRequest":
        """
        Build a request from a ScheduleRequest, a mapping or a sequence.

        Sequences follow the ``(beneficiary, start, amount[, released])``
        struct layout; a trailing ``released`` flag is ignored because new
        schedules always start unreleased.

        Raises:
            InvalidScheduleError: If the entry cannot be interpreted
        """
        if isinstance(entry, cls):
            return entry
        if isinstance(entry, Mapping):
            try:
                return cls(entry["beneficiary"], entry["start"], entry["amount"])
            except KeyError as exc:
                raise InvalidScheduleError(
                    f"TokenVesting: schedule entry missing field {exc.args[0]!r}",
                    details={"entry": dict(entry)},
                ) from exc
        if isinstance(entry, Sequence) and not isinstance(entry, (str, bytes)):
            if len(entry) not in (3, 4):
                raise InvalidScheduleError(
                    "TokenVesting: schedule entry must be (beneficiary, start, amount)",
                    details={"entry": list(entry)},
                )
            return cls(entry[0], entry[1], entry[2])
        raise InvalidScheduleError(
            f"TokenVesting: unsupported schedule entry type {type(entry).__name__}"
        )


@dataclass
class LedgerEvent:
    """Audit record of a ledger state change."""

    event_type: str  # "ScheduleCreated", "TokensReleased" or "Withdrawn"
    account: str
    amount: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class _Snapshot:
    schedules: Dict[str, VestingSchedule]
    beneficiaries: list[str]
    committed_total: int
    event_count: int


class VestingLedger:
    """
    Token vesting ledger with 100% cliff release.

    All mutating operations take the caller identity as their first argument.
    Funds live in the injected custodian under ``self.address``.

    Usage:
        ledger = VestingLedger(custodian=token, owner="0xowner")
        ledger.create_vesting_schedule("0xowner", "0xalice", start, 100)
        ledger.release("0xalice", "0xalice")
    """

    def __init__(
        self,
        custodian: FundsCustodian,
        owner: str,
        address: str | None = None,
        time_provider: TimeProvider | None = None,
        vesting_duration: int = VESTING_DURATION,
    ) -> None:
        if not owner:
            raise UnauthorizedError("TokenVesting: owner cannot be empty")
        if isinstance(vesting_duration, bool) or not isinstance(vesting_duration, int) or vesting_duration < 0:
            raise InvalidScheduleError("TokenVesting: vesting duration must be a non-negative integer")

        self.custodian = custodian
        self.owner = owner.lower()
        self.vesting_duration = vesting_duration
        self._time_provider = time_provider or system_time

        if not address:
            addr_input = f"vesting:{self.owner}:{custodian.address}:{time.time()}".encode()
            address = f"0x{hashlib.sha3_256(addr_input).digest()[-20:].hex()}"
        self.address = address.lower()

        self._schedules: Dict[str, VestingSchedule] = {}
        self._beneficiaries: list[str] = []
        self._committed_total = 0
        self.events: list[LedgerEvent] = []
        self._locked = False

        logger.info(
            "Vesting ledger initialized",
            extra={
                "event": "vesting.initialized",
                "address": self.address,
                "token": custodian.address,
                "owner": self.owner[:10],
                "vesting_duration": vesting_duration,
            }
        )

    # ==================== View Functions ====================

    def get_current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    def get_token(self) -> str:
        """Address of the custodian holding the ledger's funds."""
        return self.custodian.address

    def get_vesting_schedules_count(self) -> int:
        return len(self._beneficiaries)

    def get_vesting_schedules_total_amount(self) -> int:
        """Sum of amounts committed to schedules not yet released."""
        return self._committed_total

    def get_vesting_schedule(self, beneficiary: str) -> VestingSchedule:
        """
        Look up the schedule of a beneficiary.

        This is a read-only lookup, not an existence check: an unknown
        beneficiary yields an empty record with ``amount_total == 0``.

        Returns:
            Copy of the stored schedule
        """
        schedule = self._schedules.get(beneficiary.lower())
        if schedule is None:
            return VestingSchedule.empty()
        return dataclasses.replace(schedule)

    def get_beneficiary_at_index(self, index: int) -> str:
        if not 0 <= index < len(self._beneficiaries):
            raise ScheduleNotFoundError(
                "TokenVesting: index out of bounds",
                details={"index": index, "count": len(self._beneficiaries)},
            )
        return self._beneficiaries[index]

    def get_beneficiaries(self) -> list[str]:
        return list(self._beneficiaries)

    def get_withdrawable_amount(self) -> int:
        """
        Funds held by the ledger that are not committed to any pending schedule.

        Raises:
            LedgerInvariantError: If commitments exceed holdings
        """
        balance = self.custodian.balance_of(self.address)
        withdrawable = balance - self._committed_total
        if withdrawable < 0:
            logger.critical(
                "Vesting commitments exceed custodian holdings",
                extra={
                    "event": "vesting.invariant_broken",
                    "address": self.address,
                    "balance": balance,
                    "committed_total": self._committed_total,
                }
            )
            raise LedgerInvariantError(
                f"TokenVesting: committed total {self._committed_total} "
                f"exceeds holdings {balance}",
                details={"balance": balance, "committed_total": self._committed_total},
            )
        return withdrawable

    def compute_releasable_amount(self, beneficiary: str) -> int:
        """Amount ``release`` would transfer right now (0 if nothing is due)."""
        schedule = self._schedules.get(beneficiary.lower())
        if schedule is None or schedule.released:
            return 0
        if self.get_current_time() < schedule.vesting_date(self.vesting_duration):
            return 0
        return schedule.amount_total

    # ==================== State-Changing Functions ====================

    def create_vesting_schedule(
        self, caller: str, beneficiary: str, start: int, amount: int
    ) -> VestingSchedule:
        """
        Create a vesting schedule (owner only).

        Args:
            caller: Address calling (must be owner)
            beneficiary: Address entitled to the vested funds
            start: Vesting start timestamp
            amount: Total amount vested

        Returns:
            Copy of the created schedule

        Raises:
            UnauthorizedError: If caller is not the owner
            InsufficientFundsError: If amount exceeds withdrawable funds
            InvalidAmountError: If amount is not positive
            DuplicateScheduleError: If beneficiary already has a schedule
        """
        request = ScheduleRequest(beneficiary, start, amount)
        with self._unit_of_work("create"):
            schedule = self._create(caller, request)
        return dataclasses.replace(schedule)

    def create_vesting_schedules(
        self, caller: str, entries: Iterable[Any]
    ) -> list[VestingSchedule]:
        """
        Create several schedules as one unit of work.

        Entries are applied in order. If any entry fails, every schedule
        created earlier in the batch is rolled back and the original error is
        raised.

        Args:
            caller: Address calling (must be owner)
            entries: ScheduleRequest objects, mappings or
                ``(beneficiary, start, amount[, released])`` sequences

        Returns:
            Copies of the created schedules, in order
        """
        with self._unit_of_work("create_batch"):
            self._require_owner(caller)
            requests =[ScheduleRequest.coerce(entry) for entry in entries]
            created = [self._create(caller, request) for request in requests]

        logger.info(
            "Vesting schedule batch created",
            extra={
                "event": "vesting.batch_created",
                "address": self.address,
                "count": len(created),
                "amount": sum(s.amount_total for s in created),
            }
        )
        return [dataclasses.replace(s) for s in created]

    def release(self, caller: str, beneficiary: str) -> int:
        """
        Release the full vested amount of a schedule to its beneficiary.

        Args:
            caller: Beneficiary or owner
            beneficiary: Schedule to release

        Returns:
            Amount transferred

        Raises:
            UnauthorizedError: If caller is neither beneficiary nor owner
            ScheduleNotFoundError: If the beneficiary has no schedule
            AlreadyReleasedError: If the schedule was released before
            TooEarlyError: If the vesting date has not been reached
            TransferFailedError: If the custodian transfer fails
        """
        caller_norm = caller.lower()
        beneficiary_norm = beneficiary.lower()

        with self._unit_of_work("release"):
            if caller_norm not in (beneficiary_norm, self.owner):
                raise UnauthorizedError(
                    "TokenVesting: only beneficiary and owner can release vested tokens",
                    details={"caller": caller_norm, "beneficiary": beneficiary_norm},
                )

            schedule = self._schedules.get(beneficiary_norm)
            if schedule is None:
                raise ScheduleNotFoundError(
                    "TokenVesting: no vesting schedule for address",
                    details={"beneficiary": beneficiary_norm},
                )
            if schedule.released:
                raise AlreadyReleasedError(
                    "TokenVesting: cannot release tokens, already vested",
                    details={"beneficiary": beneficiary_norm},
                )

            now = self.get_current_time()
            vesting_date = schedule.vesting_date(self.vesting_duration)
            if now < vesting_date:
                raise TooEarlyError(
                    "TokenVesting: vesting date not yet reached",
                    details={
                        "beneficiary": beneficiary_norm,
                        "current_time": now,
                        "vesting_date": vesting_date,
                    },
                )

            amount = schedule.amount_total
            schedule.released = True
            self._committed_total -= amount
            self._record("TokensReleased", beneficiary_norm, amount, now)

            # Transfer must stay the last effect
            self._transfer_out(beneficiary_norm, amount)

        logger.info(
            "Vested tokens released",
            extra={
                "event": "vesting.released",
                "address": self.address,
                "beneficiary": beneficiary_norm[:10],
                "caller": caller_norm[:10],
                "amount": amount,
            }
        )
        return amount

    def withdraw(self, caller: str, amount: int) -> int:
        """
        Withdraw uncommitted funds to the owner (owner only).

        Raises:
            UnauthorizedError: If caller is not the owner
            InvalidAmountError: If amount is not a positive integer
            InsufficientFundsError: If amount exceeds withdrawable funds
            TransferFailedError: If the custodian transfer fails
        """
        with self._unit_of_work("withdraw"):
            self._require_owner(caller)
            self._validate_amount(amount)

            withdrawable = self.get_withdrawable_amount()
            if amount > withdrawable:
                raise InsufficientFundsError(
                    "TokenVesting: not enough withdrawable funds",
                    details={"amount": amount, "withdrawable": withdrawable},
                )

            self._record("Withdrawn", self.owner, amount, self.get_current_time())
            self._transfer_out(self.owner, amount)

        logger.info(
            "Uncommitted funds withdrawn",
            extra={
                "event": "vesting.withdrawn",
                "address": self.address,
                "amount": amount,
            }
        )
        return amount

    # ==================== Helpers ====================

    def _create(self, caller: str, request: ScheduleRequest) -> VestingSchedule:
        self._require_owner(caller)

        beneficiary = request.beneficiary
        if not isinstance(beneficiary, str) or not beneficiary:
            raise InvalidScheduleError("TokenVesting: beneficiary cannot be empty")
        beneficiary = beneficiary.lower()

        start = request.start
        if isinstance(start, bool) or not isinstance(start, int) or start < 0:
            raise InvalidScheduleError(
                "TokenVesting: start must be a non-negative integer timestamp",
                details={"beneficiary": beneficiary, "start": start},
            )

        amount = request.amount
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidAmountError(
                "TokenVesting: amount must be an integer",
                details={"beneficiary": beneficiary, "amount": amount},
            )

        withdrawable = self.get_withdrawable_amount()
        if withdrawable < amount:
            raise InsufficientFundsError(
                "TokenVesting: cannot create vesting schedule because not sufficient tokens",
                details={"amount": amount, "withdrawable": withdrawable},
            )
        if amount <= 0:
            raise InvalidAmountError(
                "TokenVesting: amount must be > 0",
                details={"beneficiary": beneficiary, "amount": amount},
            )
        if beneficiary in self._schedules:
            raise DuplicateScheduleError(
                "TokenVesting: vesting schedule for address already initialized",
                details={"beneficiary": beneficiary},
            )

        schedule = VestingSchedule(beneficiary=beneficiary, start=start, amount_total=amount)
        self._schedules[beneficiary] = schedule
        self._beneficiaries.append(beneficiary)
        self._committed_total += amount
        self._record("ScheduleCreated", beneficiary, amount, self.get_current_time())

        logger.info(
            "Vesting schedule created",
            extra={
                "event": "vesting.schedule_created",
                "address": self.address,
                "beneficiary": beneficiary[:10],
                "start": start,
                "amount": amount,
            }
        )
        return schedule

    def _transfer_out(self, recipient: str, amount: int) -> None:
        try:
            ok = self.custodian.transfer(self.address, recipient, amount)
        except Exception as exc:
            raise TransferFailedError(
                f"TokenVesting: transfer to {recipient} failed: {exc}",
                details={"recipient": recipient, "amount": amount},
            ) from exc
        if not ok:
            raise TransferFailedError(
                f"TokenVesting: transfer to {recipient} rejected by custodian",
                details={"recipient": recipient, "amount": amount},
            )

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[None]:
        """Non-reentrant scope that restores ledger state if anything fails."""
        if self._locked:
            raise ReentrantCallError(
                f"TokenVesting: reentrant call to {operation}",
                details={"operation": operation},
            )
        self._locked = True
        snapshot = self._snapshot()
        try:
            yield
        except Exception as exc:
            self._restore(snapshot)
            logger.warning(
                "Vesting operation rejected: %s",
                exc,
                extra={
                    "event": "vesting.rejected",
                    "operation": operation,
                    "error_type": type(exc).__name__,
                }
            )
            raise
        finally:
            self._locked = False

    def _snapshot(self) -> _Snapshot:
        return _Snapshot(
            schedules={k: dataclasses.replace(v) for k, v in self._schedules.items()},
            beneficiaries=list(self._beneficiaries),
            committed_total=self._committed_total,
            event_count=len(self.events),
        )

    def _restore(self, snapshot: _Snapshot) -> None:
        self._schedules = snapshot.schedules
        self._beneficiaries = snapshot.beneficiaries
        self._committed_total = snapshot.committed_total
        del self.events[snapshot.event_count:]

    def _record(self, event_type: str, account: str, amount: int, timestamp: int) -> None:
        self.events.append(
            LedgerEvent(event_type=event_type, account=account, amount=amount, timestamp=timestamp)
        )

    def _require_owner(self, caller: str) -> None:
        if caller.lower() != self.owner:
            raise UnauthorizedError(
                "Ownable: caller is not the owner",
                details={"caller": caller.lower()},
            )

    def _validate_amount(self, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(
                "TokenVesting: amount must be a positive integer",
                details={"amount": amount},
            )

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        """Serialize ledger state to dictionary."""
        return {
            "address": self.address,
            "owner": self.owner,
            "token": self.custodian.address,
            "vesting_duration": self.vesting_duration,
            "committed_total": self._committed_total,
            "beneficiaries": list(self._beneficiaries),
            "schedules": [self._schedules[b].to_dict() for b in self._beneficiaries],
            "events": [e.to_dict() for e in self.events],
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        custodian: FundsCustodian,
        time_provider: TimeProvider | None = None,
    ) -> "VestingLedger":
        """
        Deserialize ledger state and re-check its accounting.

        Raises:
            LedgerInvariantError: If the stored committed total or registry
                disagrees with the stored schedules
        """
        token = data.get("token")
        if token and token.lower() != custodian.address.lower():
            raise LedgerInvariantError(
                "TokenVesting: snapshot belongs to a different token",
                details={"expected": token, "actual": custodian.address},
            )

        ledger = cls(
            custodian=custodian,
            owner=data["owner"],
            address=data["address"],
            time_provider=time_provider,
            vesting_duration=int(data.get("vesting_duration", VESTING_DURATION)),
        )
        schedules = [VestingSchedule.from_dict(s) for s in data.get("schedules", [])]
        for schedule in schedules:
            if not schedule.beneficiary or schedule.amount_total <= 0 or schedule.start < 0:
                raise LedgerInvariantError(
                    "TokenVesting: invalid schedule in snapshot",
                    details=schedule.to_dict(),
                )
        ledger._schedules = {s.beneficiary: s for s in schedules}
        ledger._beneficiaries = [s.beneficiary for s in schedules]
        ledger._committed_total = int(data.get("committed_total", 0))
        ledger.events = [LedgerEvent(**e) for e in data.get("events", [])]

        if len(ledger._schedules) != len(ledger._beneficiaries):
            raise LedgerInvariantError("TokenVesting: duplicate beneficiary in snapshot")
        expected = sum(s.amount_total for s in schedules if not s.released)
        if expected != ledger._committed_total:
            raise LedgerInvariantError(
                f"TokenVesting: committed total {ledger._committed_total} "
                f"does not match pending schedules ({expected})",
                details={"stored": ledger._committed_total, "expected": expected},
            )
        return ledger

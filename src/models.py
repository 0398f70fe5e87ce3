from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import ClassVar, FrozenSet, Optional, Union


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @classmethod
    def dispute_family(cls) -> FrozenSet["TransactionType"]:
        return frozenset({cls.DISPUTE, cls.RESOLVE, cls.CHARGEBACK})


class ProcessingResult(Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"


class DisputeState(Enum):
    UNDISPUTED = "undisputed"
    DISPUTED = "disputed"
    CHARGEBACKED = "chargebacked"


@dataclass(frozen=True)
class FundsTransfer:
    """Deposit or withdrawal: the only kinds that move money and create a tx id."""

    transaction_type: ClassVar[TransactionType]

    client_id: int
    transaction_id: int
    amount: Decimal

    def __repr__(self) -> str:
        return f"{type(self).__name__}(client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


class Deposit(FundsTransfer):
    transaction_type = TransactionType.DEPOSIT


class Withdrawal(FundsTransfer):
    transaction_type = TransactionType.WITHDRAWAL


@dataclass(frozen=True)
class DisputeAction:
    """Dispute, resolve or chargeback. References an existing tx id and never carries an amount."""

    transaction_type: ClassVar[TransactionType]

    client_id: int
    transaction_id: int

    def __repr__(self) -> str:
        return f"{type(self).__name__}(client={self.client_id}, tx={self.transaction_id})"


class Dispute(DisputeAction):
    transaction_type = TransactionType.DISPUTE


class Resolve(DisputeAction):
    transaction_type = TransactionType.RESOLVE


class Chargeback(DisputeAction):
    transaction_type = TransactionType.CHARGEBACK


Transaction = Union[Deposit, Withdrawal, Dispute, Resolve, Chargeback]


@dataclass(frozen=True)
class ParseFailure:
    """A source record that could not be turned into a Transaction."""

    line: int
    reason: str
    transaction_type: Optional[TransactionType] = None
    client_id: Optional[int] = None
    transaction_id: Optional[int] = None


@dataclass
class TransactionRecord:
    transaction_id: int
    client_id: int
    transaction_type: TransactionType
    amount: Decimal
    dispute_state: DisputeState = DisputeState.UNDISPUTED
    # Set while disputed when the hold was taken out of available funds.
    held_from_available: bool = False


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        self.available += amount

    def debit(self, amount: Decimal) -> None:
        self.available -= amount

    def hold(self, amount: Decimal) -> None:
        self.available -= amount
        self.held += amount

    def reclaim(self, amount: Decimal) -> None:
        # Withdrawn funds come back under hold; total grows.
        self.held += amount

    def release_hold(self, amount: Decimal) -> None:
        self.held -= amount
        self.available += amount

    def remove_held(self, amount: Decimal) -> None:
        self.held -= amount

    def lock(self) -> None:
        self.locked = True


class ProcessingStats:
    """Counters for tracking processing statistics."""

    def __init__(self):
        self.processed = 0
        self.skipped = 0

    def record_success(self):
        self.processed += 1

    def record_skip(self):
        self.skipped += 1

    def __repr__(self) -> str:
        return f"ProcessingStats(processed={self.processed}, skipped={self.skipped})"

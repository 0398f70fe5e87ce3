from dataclasses import dataclass
from typing import FrozenSet, Type

from errors import (
    AccountLocked,
    ClientMismatch,
    DuplicateTransaction,
    InsufficientFunds,
    InvalidDisputeTransition,
    MalformedRecord,
    RejectedTransaction,
    UnknownTransaction,
)

# These mean the transaction source itself is inconsistent, not merely noisy.
ALWAYS_PROPAGATE = (InsufficientFunds, DuplicateTransaction, AccountLocked)


@dataclass(frozen=True)
class ValidationPolicy:
    """
    Decides, per rejection, whether the engine skips the record ("absorb")
    or surfaces the error to its caller ("propagate").

    MalformedRecord is only ever absorbed for dispute-family records.
    """

    name: str
    absorbed: FrozenSet[Type[RejectedTransaction]] = frozenset()
    deposits_when_locked: bool = True

    def __post_init__(self):
        forbidden = [kind.__name__ for kind in self.absorbed if issubclass(kind, ALWAYS_PROPAGATE)]
        if forbidden:
            raise ValueError(f"policy {self.name!r} cannot absorb {', '.join(sorted(forbidden))}")

    def absorbs(self, error: RejectedTransaction) -> bool:
        if isinstance(error, ALWAYS_PROPAGATE):
            return False
        if isinstance(error, MalformedRecord) and not error.dispute_family:
            return False
        return isinstance(error, tuple(self.absorbed))


STRICT = ValidationPolicy(name="strict", deposits_when_locked=False)

LENIENT = ValidationPolicy(
    name="lenient",
    absorbed=frozenset({UnknownTransaction, ClientMismatch, InvalidDisputeTransition, MalformedRecord}),
)


def policy_for(strict: bool) -> ValidationPolicy:
    return STRICT if strict else LENIENT

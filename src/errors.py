from typing import Optional

from models import TransactionType


class RejectedTransaction(Exception):
    """
    Base class for every reason the engine refuses a transaction.
    Carries enough context (tx id, client, kind) to diagnose the offending record.
    """

    def __init__(
        self,
        message: str,
        transaction_id: Optional[int] = None,
        client_id: Optional[int] = None,
        transaction_type: Optional[TransactionType] = None,
    ):
        super().__init__(message)
        self.message = message
        self.transaction_id = transaction_id
        self.client_id = client_id
        self.transaction_type = transaction_type

    def __str__(self) -> str:
        kind = self.transaction_type.value if self.transaction_type else "unknown"
        return f"{kind} tx={self.transaction_id} client={self.client_id}: {self.message}"


class DuplicateTransaction(RejectedTransaction):
    pass


class UnknownTransaction(RejectedTransaction):
    pass


class ClientMismatch(RejectedTransaction):
    pass


class InvalidDisputeTransition(RejectedTransaction):
    pass


class InsufficientFunds(RejectedTransaction):
    pass


class AccountLocked(RejectedTransaction):
    pass


class MalformedRecord(RejectedTransaction):
    """Record that could not be parsed, or whose fields are invalid for its kind."""

    @property
    def dispute_family(self) -> bool:
        return self.transaction_type in TransactionType.dispute_family()

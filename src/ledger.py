import logging
from decimal import Decimal
from typing import Dict

from errors import DuplicateTransaction, InvalidDisputeTransition, UnknownTransaction
from models import DisputeState, TransactionRecord, TransactionType

logger = logging.getLogger(__name__)

LEGAL_TRANSITIONS = {
    DisputeState.UNDISPUTED: frozenset({DisputeState.DISPUTED}),
    DisputeState.DISPUTED: frozenset({DisputeState.UNDISPUTED, DisputeState.CHARGEBACKED}),
    DisputeState.CHARGEBACKED: frozenset(),
}


class TransactionLedger:
    """
    Deposit and withdrawal history, keyed by transaction id, plus the dispute
    status of each entry. Pure bookkeeping: never touches account balances.
    """

    def __init__(self):
        self._records: Dict[int, TransactionRecord] = {}

    def __contains__(self, transaction_id: int) -> bool:
        return transaction_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def record(
        self,
        transaction_id: int,
        client_id: int,
        transaction_type: TransactionType,
        amount: Decimal,
    ) -> TransactionRecord:
        """Store a new undisputed entry. Raises DuplicateTransaction if the id is taken."""
        if transaction_id in self._records:
            raise DuplicateTransaction(
                "transaction id already recorded",
                transaction_id=transaction_id,
                client_id=client_id,
                transaction_type=transaction_type,
            )

        record = TransactionRecord(
            transaction_id=transaction_id,
            client_id=client_id,
            transaction_type=transaction_type,
            amount=amount,
        )
        self._records[transaction_id] = record
        return record

    def lookup(self, transaction_id: int) -> TransactionRecord:
        """Retrieve a stored entry. Raises UnknownTransaction if it was never recorded."""
        try:
            return self._records[transaction_id]
        except KeyError:
            raise UnknownTransaction(
                "no deposit or withdrawal with this id", transaction_id=transaction_id
            ) from None

    def check_transition(self, transaction_id: int, new_state: DisputeState) -> TransactionRecord:
        """Validate a dispute state change without applying it."""
        record = self.lookup(transaction_id)
        if new_state not in LEGAL_TRANSITIONS[record.dispute_state]:
            raise InvalidDisputeTransition(
                f"cannot move from {record.dispute_state.value} to {new_state.value}",
                transaction_id=transaction_id,
                client_id=record.client_id,
                transaction_type=record.transaction_type,
            )
        return record

    def transition(self, transaction_id: int, new_state: DisputeState) -> TransactionRecord:
        record = self.check_transition(transaction_id, new_state)
        logger.debug(f"tx {transaction_id}: {record.dispute_state.value} -> {new_state.value}")
        record.dispute_state = new_state
        return record

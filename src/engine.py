import logging
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from errors import (
    AccountLocked,
    ClientMismatch,
    DuplicateTransaction,
    InsufficientFunds,
    MalformedRecord,
    RejectedTransaction,
)
from ledger import TransactionLedger
from models import (
    Chargeback,
    ClientAccount,
    Deposit,
    Dispute,
    DisputeAction,
    DisputeState,
    FundsTransfer,
    ParseFailure,
    ProcessingResult,
    ProcessingStats,
    Resolve,
    Transaction,
    TransactionRecord,
    TransactionType,
    Withdrawal,
)
from policy import LENIENT, ValidationPolicy

logger = logging.getLogger(__name__)

SourceRecord = Union[Transaction, ParseFailure]


class AccountEngine:
    """
    Applies an ordered stream of transactions to client accounts.

    Each record mutates at most one account. All checks run before any
    mutation, so a rejected record leaves accounts and ledger untouched.
    Records must be applied in arrival order: a dispute, resolve or chargeback
    observes the committed state of the deposit/withdrawal it references.
    """

    def __init__(self, policy: ValidationPolicy = LENIENT):
        self._policy = policy
        self._accounts: Dict[int, ClientAccount] = {}
        self._ledger = TransactionLedger()
        self._stats = ProcessingStats()
        self._rejections: List[RejectedTransaction] = []

    @classmethod
    def from_transactions(cls, transactions: List[SourceRecord], policy: ValidationPolicy = LENIENT) -> "AccountEngine":
        """Build final state from a complete batch."""
        engine = cls(policy)
        engine.apply_all(transactions)
        return engine

    @classmethod
    def from_transaction_iter(cls, transactions: Iterable[SourceRecord], policy: ValidationPolicy = LENIENT) -> "AccountEngine":
        """Build final state from a live sequence, consumed one record at a time."""
        engine = cls(policy)
        for _ in engine.iter_apply(transactions):
            pass
        return engine

    @property
    def policy(self) -> ValidationPolicy:
        return self._policy

    @property
    def ledger(self) -> TransactionLedger:
        return self._ledger

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    @property
    def rejections(self) -> List[RejectedTransaction]:
        """Rejections absorbed by the policy, in arrival order."""
        return list(self._rejections)

    def accounts(self) -> Dict[int, ClientAccount]:
        """Return all accounts (for final output)."""
        return dict(self._accounts)

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        return self._accounts.get(client_id)

    def apply_all(self, transactions: Iterable[SourceRecord]) -> None:
        for transaction in transactions:
            self.apply(transaction)

    def iter_apply(self, transactions: Iterable[SourceRecord]) -> Iterator[Tuple[SourceRecord, ProcessingResult]]:
        for transaction in transactions:
            yield transaction, self.apply(transaction)

    def apply(self, transaction: SourceRecord) -> ProcessingResult:
        """
        Apply a single record.

        Returns:
            SUCCESS: Applied
            SKIPPED: Rejected, and the policy absorbed the rejection

        Raises:
            RejectedTransaction: Rejected, and the policy propagates the rejection
        """
        try:
            self._dispatch(transaction)
        except RejectedTransaction as error:
            if not self._policy.absorbs(error):
                raise
            logger.warning(f"Skipping {transaction!r}: {error}")
            self._rejections.append(error)
            self._stats.record_skip()
            return ProcessingResult.SKIPPED

        logger.debug(f"Applied {transaction!r}")
        self._stats.record_success()
        return ProcessingResult.SUCCESS

    def _dispatch(self, transaction: SourceRecord) -> None:
        match transaction:
            case Deposit():
                self._handle_deposit(transaction)
            case Withdrawal():
                self._handle_withdrawal(transaction)
            case Dispute():
                self._handle_dispute(transaction)
            case Resolve():
                self._handle_resolve(transaction)
            case Chargeback():
                self._handle_chargeback(transaction)
            case ParseFailure():
                raise MalformedRecord(
                    f"line {transaction.line}: {transaction.reason}",
                    transaction_id=transaction.transaction_id,
                    client_id=transaction.client_id,
                    transaction_type=transaction.transaction_type,
                )
            case _:
                raise TypeError(f"not a transaction: {transaction!r}")

    def _handle_deposit(self, transaction: Deposit) -> None:
        self._validate_amount(transaction)
        account = self._accounts.get(transaction.client_id)
        if account is not None and account.locked and not self._policy.deposits_when_locked:
            raise self._rejection(AccountLocked, transaction, "account is locked")
        self._check_new_id(transaction)

        account = self._upsert_account(transaction.client_id)
        account.credit(transaction.amount)
        self._ledger.record(transaction.transaction_id, transaction.client_id, TransactionType.DEPOSIT, transaction.amount)

    def _handle_withdrawal(self, transaction: Withdrawal) -> None:
        self._validate_amount(transaction)
        account = self._accounts.get(transaction.client_id)
        if account is not None and account.locked:
            raise self._rejection(AccountLocked, transaction, "account is locked")
        self._check_new_id(transaction)

        available = account.available if account is not None else Decimal("0")
        if available < transaction.amount:
            raise self._rejection(
                InsufficientFunds, transaction, f"available {available} is less than {transaction.amount}"
            )

        account = self._upsert_account(transaction.client_id)
        account.debit(transaction.amount)
        self._ledger.record(transaction.transaction_id, transaction.client_id, TransactionType.WITHDRAWAL, transaction.amount)

    def _handle_dispute(self, transaction: Dispute) -> None:
        record, account = self._referenced(transaction)
        self._ledger.check_transition(record.transaction_id, DisputeState.DISPUTED)
        if account.locked:
            raise self._rejection(AccountLocked, transaction, "account is locked")

        # A deposit whose funds have partly left the account is held in full
        # without driving available below zero.
        hold_from_available = (
            record.transaction_type == TransactionType.DEPOSIT and account.available >= record.amount
        )
        if hold_from_available:
            account.hold(record.amount)
        else:
            account.reclaim(record.amount)
        self._ledger.transition(record.transaction_id, DisputeState.DISPUTED)
        record.held_from_available = hold_from_available

    def _handle_resolve(self, transaction: Resolve) -> None:
        record, account = self._referenced(transaction)
        self._ledger.check_transition(record.transaction_id, DisputeState.UNDISPUTED)

        if record.held_from_available:
            account.release_hold(record.amount)
        else:
            account.remove_held(record.amount)
        self._ledger.transition(record.transaction_id, DisputeState.UNDISPUTED)
        record.held_from_available = False

    def _handle_chargeback(self, transaction: Chargeback) -> None:
        record, account = self._referenced(transaction)
        self._ledger.check_transition(record.transaction_id, DisputeState.CHARGEBACKED)
        if account.locked:
            raise self._rejection(AccountLocked, transaction, "account is locked")

        if record.transaction_type == TransactionType.DEPOSIT:
            account.remove_held(record.amount)
        else:
            account.release_hold(record.amount)
        account.lock()
        self._ledger.transition(record.transaction_id, DisputeState.CHARGEBACKED)
        logger.info(f"Client {account.client_id} locked by chargeback of tx {record.transaction_id}")

    def _referenced(self, transaction: DisputeAction) -> Tuple[TransactionRecord, ClientAccount]:
        """Look up the deposit/withdrawal a dispute-family record points at."""
        try:
            record = self._ledger.lookup(transaction.transaction_id)
        except RejectedTransaction as error:
            error.client_id = transaction.client_id
            error.transaction_type = transaction.transaction_type
            raise

        if record.client_id != transaction.client_id:
            raise self._rejection(
                ClientMismatch, transaction, f"tx belongs to client {record.client_id}"
            )
        return record, self._accounts[record.client_id]

    def _validate_amount(self, transaction: FundsTransfer) -> None:
        amount = transaction.amount
        if not isinstance(amount, Decimal) or not amount.is_finite() or amount <= 0:
            raise self._rejection(MalformedRecord, transaction, f"invalid amount {amount}")

    def _check_new_id(self, transaction: FundsTransfer) -> None:
        if transaction.transaction_id in self._ledger:
            raise self._rejection(DuplicateTransaction, transaction, "transaction id already recorded")

    def _upsert_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one. Only reached by a validated deposit/withdrawal."""
        account = self._accounts.get(client_id)
        if account is None:
            logger.debug(f"Creating account for client {client_id}")
            account = ClientAccount(client_id=client_id)
            self._accounts[client_id] = account
        return account

    @staticmethod
    def _rejection(kind, transaction, message: str) -> RejectedTransaction:
        return kind(
            message,
            transaction_id=transaction.transaction_id,
            client_id=transaction.client_id,
            transaction_type=transaction.transaction_type,
        )

import csv
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterator, Optional, TextIO, Union

from models import (
    Chargeback,
    Deposit,
    Dispute,
    ParseFailure,
    Resolve,
    Transaction,
    TransactionType,
    Withdrawal,
)

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1
# Largest accepted deposit or withdrawal amount.
MAX_AMOUNT = Decimal("1e15")

REQUIRED_COLUMNS = ("type", "client", "tx")

VARIANTS = {
    TransactionType.DEPOSIT: Deposit,
    TransactionType.WITHDRAWAL: Withdrawal,
    TransactionType.DISPUTE: Dispute,
    TransactionType.RESOLVE: Resolve,
    TransactionType.CHARGEBACK: Chargeback,
}


class RowError(ValueError):
    pass


class TransactionsCsv:
    """
    Reads `type, client, tx, amount` rows and yields Transactions.
    Rows that cannot be parsed are yielded as ParseFailure, in place, so the
    engine's policy decides whether to skip them.
    """

    def __init__(self, stream: TextIO):
        self._reader = csv.DictReader(stream)
        header = [(name or "").strip().lower() for name in (self._reader.fieldnames or [])]
        missing = [column for column in REQUIRED_COLUMNS if column not in header]
        if missing:
            raise ValueError(f"CSV header is missing columns: {', '.join(missing)}")
        self._reader.fieldnames = header

    def __iter__(self) -> Iterator[Union[Transaction, ParseFailure]]:
        for row in self._reader:
            yield parse_row(row, self._reader.line_num)


def read_transactions(filepath: str) -> Iterator[Union[Transaction, ParseFailure]]:
    """Stream transactions from a CSV file, closing it once exhausted."""
    with open(filepath, "r", newline="") as f:
        yield from TransactionsCsv(f)


def parse_row(row: Dict[Optional[str], object], line: int) -> Union[Transaction, ParseFailure]:
    """Parse CSV row into a Transaction variant, or a ParseFailure describing what is wrong."""
    transaction_type = client_id = transaction_id = None
    try:
        if None in row:
            raise RowError(f"too many fields: {row[None]}")
        normalized = {key: (value or "").strip() for key, value in row.items()}

        transaction_type = _parse_type(normalized["type"])
        client_id = _parse_int(normalized["client"], "client", MAX_CLIENT_ID)
        transaction_id = _parse_int(normalized["tx"], "tx", MAX_TRANSACTION_ID)
        amount_str = normalized.get("amount", "")

        variant = VARIANTS[transaction_type]
        if transaction_type in TransactionType.dispute_family():
            if amount_str:
                raise RowError(f"{transaction_type.value} must not carry an amount (got {amount_str!r})")
            return variant(client_id=client_id, transaction_id=transaction_id)

        return variant(client_id=client_id, transaction_id=transaction_id, amount=_parse_amount(amount_str))
    except RowError as e:
        logger.debug(f"Failed to parse row {line} {row}: {e}")
        return ParseFailure(
            line=line,
            reason=str(e),
            transaction_type=transaction_type,
            client_id=client_id,
            transaction_id=transaction_id,
        )


def _parse_type(value: str) -> TransactionType:
    try:
        return TransactionType(value.lower())
    except ValueError:
        raise RowError(f"unknown transaction type {value!r}") from None


def _parse_int(value: str, column: str, maximum: int) -> int:
    try:
        number = int(value)
    except ValueError:
        raise RowError(f"{column} is not an integer: {value!r}") from None
    if not 0 <= number <= maximum:
        raise RowError(f"{column} out of range 0..{maximum}: {number}")
    return number


def _parse_amount(value: str) -> Decimal:
    if not value:
        raise RowError("missing amount")
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise RowError(f"amount is not a decimal: {value!r}") from None
    if not amount.is_finite():
        raise RowError(f"amount is not finite: {value!r}")
    if abs(amount) > MAX_AMOUNT:
        raise RowError(f"amount exceeds {MAX_AMOUNT:f}: {value!r}")
    return amount


import csv
from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Dict, TextIO

from models import ClientAccount

HEADER = ("client", "available", "held", "total", "locked")


def format_decimal(value: Decimal, precision: int = 4) -> str:
    """Truncate to `precision` decimal places and drop trailing zeros."""
    with localcontext() as ctx:
        # Enough digits for the integer part plus the kept fraction.
        ctx.prec = max(ctx.prec, value.adjusted() + precision + 2)
        truncated = value.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_DOWN)
        normalized = truncated.normalize()
    return f"{normalized:f}"


def account_row(account: ClientAccount, precision: int = 4) -> tuple:
    return (
        account.client_id,
        format_decimal(account.available, precision),
        format_decimal(account.held, precision),
        format_decimal(account.total, precision),
        str(account.locked).lower(),
    )


def write_accounts(accounts: Dict[int, ClientAccount], stream: TextIO, precision: int = 4) -> None:
    """Write one CSV row per account, ascending client id. Nothing is written if any row fails to format."""
    rows = [account_row(accounts[client_id], precision) for client_id in sorted(accounts.keys())]
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(HEADER)
    writer.writerows(rows)

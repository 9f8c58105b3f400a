# transfer_indexer/utils/amounts.py
"""
Exact arithmetic on token amounts.

Amounts are base-10 strings of token base units (uint256). They are summed
as Decimal under a context wide enough that no rounding can happen; the
Inexact trap turns any precision loss into an error instead of a wrong total.
"""

import re
from decimal import Decimal, Context, Inexact, Rounded, localcontext
from typing import Iterable, Union


AMOUNT_PATTERN = re.compile(r'^[0-9]+$')

# uint256 has 78 digits; leave room for summing many of them
AMOUNT_CONTEXT = Context(prec=160, traps=[Inexact, Rounded])


def is_valid_amount(amount: str) -> bool:
    return isinstance(amount, str) and bool(AMOUNT_PATTERN.match(amount))


def normalize_amount(amount: Union[str, int]) -> str:
    """Canonical base-10 form: no sign, no leading zeros."""
    if isinstance(amount, int) and not isinstance(amount, bool):
        if amount < 0:
            raise ValueError(f"Amount must be non-negative: {amount}")
        return str(amount)
    if not isinstance(amount, str) or not is_valid_amount(amount.strip()):
        raise ValueError(f"Amount must be an unsigned base-10 integer string: {amount!r}")
    return str(int(amount.strip()))


def amount_to_decimal(amount: Union[str, int]) -> Decimal:
    return Decimal(normalize_amount(amount))


def add_amounts(amounts: Iterable[Union[str, int]]) -> str:
    """Add multiple amounts and return as string"""
    with localcontext(AMOUNT_CONTEXT):
        total = Decimal(0)
        for amount in amounts:
            total += amount_to_decimal(amount)
        return format(total, 'f')

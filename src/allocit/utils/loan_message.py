"""Loan payment message parsing.

Finnish banks describe loan instalments in the transaction message, e.g.::

    Lyhennys 244,25 euroa Korko 166,37 euroa Kulut 2,50 euroa OP-bonuksista
    Jäljellä 65 851,63 euroa

Lyhennys is the principal, Korko the interest, Kulut the handling fee
(optional) and Jäljellä the remaining loan balance.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from allocit.domain.entities import LoanPaymentComponents

_NUMBER = r"([\d\s]+,\d{2})"

_PRINCIPAL = re.compile(rf"Lyhennys\s+{_NUMBER}\s+euroa", re.IGNORECASE)
_INTEREST = re.compile(rf"Korko\s+{_NUMBER}\s+euroa", re.IGNORECASE)
_HANDLING_FEE = re.compile(rf"Kulut\s+{_NUMBER}\s+euroa", re.IGNORECASE)
_REMAINING = re.compile(rf"Jäljellä\s+{_NUMBER}\s+euroa", re.IGNORECASE)


def parse_finnish_number(value: str) -> Decimal:
    """Parse a number with comma decimals and space thousands separators.

    Examples: "244,25" -> 244.25, "65 851,63" -> 65851.63
    """
    normalized = re.sub(r"\s", "", value).replace(",", ".")
    try:
        return Decimal(normalized)
    except InvalidOperation:
        return Decimal("0")


def parse_loan_payment_message(message: Optional[str]) -> Optional[LoanPaymentComponents]:
    """Parse a loan payment message.

    Args:
        message: Transaction description

    Returns:
        Loan components, or None if the message is not a loan payment
    """
    if not message:
        return None

    principal = _PRINCIPAL.search(message)
    interest = _INTEREST.search(message)
    remaining = _REMAINING.search(message)

    # Principal, interest and remaining balance are all required
    if principal is None or interest is None or remaining is None:
        return None

    handling_fee = _HANDLING_FEE.search(message)
    return LoanPaymentComponents(
        principal=parse_finnish_number(principal.group(1)),
        interest=parse_finnish_number(interest.group(1)),
        handling_fee=parse_finnish_number(handling_fee.group(1)) if handling_fee else Decimal("0"),
        remaining=parse_finnish_number(remaining.group(1)),
    )


def is_loan_payment_message(message: Optional[str]) -> bool:
    """Check if a message is in the loan payment format."""
    return parse_loan_payment_message(message) is not None

"""Utility functions for allocit."""

from allocit.utils.date_parser import parse_date
from allocit.utils.amount_parser import parse_amount
from allocit.utils.loan_message import parse_loan_payment_message

__all__ = ["parse_date", "parse_amount", "parse_loan_payment_message"]

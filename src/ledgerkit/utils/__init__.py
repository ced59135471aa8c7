"""Utility functions for ledgerkit."""

from ledgerkit.utils.date_parser import DateResolver, parse_date, resolve_date
from ledgerkit.utils.amount_parser import parse_amount, to_money

__all__ = ["DateResolver", "parse_date", "resolve_date", "parse_amount", "to_money"]

"""Utility functions for tallyup."""

from tallyup.utils.date_parser import parse_date, date_window
from tallyup.utils.amount_parser import parse_amount, coerce_amount
from tallyup.utils.trigram import trigram_similarity

__all__ = ["parse_date", "date_window", "parse_amount", "coerce_amount", "trigram_similarity"]

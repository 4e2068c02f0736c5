"""Tunable constants for reconciliation and categorization.

The similarity thresholds are tuned against trigram similarity; swapping
the similarity function for another algorithm means re-tuning them.
"""

from decimal import Decimal

# Entry kinds
RECEIPT = "receipt"
BANK_TRANSACTION = "bank_transaction"
ENTRY_TYPES = (RECEIPT, BANK_TRANSACTION)

# Rule fields and match types
FIELD_MERCHANT_NAME = "merchantName"
FIELD_DESCRIPTION = "description"
RULE_FIELDS = (FIELD_MERCHANT_NAME, FIELD_DESCRIPTION)

MATCH_EXACT = "exact"
MATCH_CONTAINS = "contains"
MATCH_REGEX = "regex"
MATCH_TYPES = (MATCH_EXACT, MATCH_CONTAINS, MATCH_REGEX)

# Category types
CATEGORY_TYPES = ("expense", "income", "transfer")

# Fuzzy merchant matching
SIMILARITY_THRESHOLD = 0.3

# Duplicate detection
DUPLICATE_DATE_WINDOW_DAYS = 3
DUPLICATE_AMOUNT_TOLERANCE = Decimal("0.05")
DUPLICATE_MAX_CANDIDATES = 5
DUPLICATE_MIN_CONFIDENCE = 0.5
SIMILAR_MERCHANT_REASON_THRESHOLD = 0.8

# Transfer detection
TRANSFER_DATE_WINDOW_DAYS = 2
TRANSFER_AMOUNT_TOLERANCE = Decimal("0.01")
TRANSFER_MAX_MATCHES = 5

# Similar transactions
SIMILAR_DEFAULT_WINDOW_DAYS = 90
SIMILAR_MAX_RESULTS = 20
SIMILAR_RANK_BAND = 0.1

# Categorization confidence
RULE_CONFIDENCE = 1.0
HISTORY_CONFIDENCE = 0.85

# BNPL / installment credits
BNPL_MIN_CONFIDENCE = 0.9
INSTALLMENT_CREDIT_CONFIDENCE = 0.95
INSTALLMENT_CREDIT_MIN_CONFIDENCE = 0.9

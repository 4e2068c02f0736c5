"""Mapper functions to convert between domain models and SQLAlchemy models.

Receipts and bank transactions map onto the same FinancialEntry entity;
receipt totals are stored unsigned and surface as-is.
"""

from decimal import Decimal

from tallyup.domain import entities as domain
from tallyup.domain.constants import RECEIPT, BANK_TRANSACTION
from tallyup.database.models import (
    BankStatement as ORMBankStatement,
    Receipt as ORMReceipt,
    BankTransaction as ORMBankTransaction,
    Category as ORMCategory,
    Business as ORMBusiness,
    CategoryRule as ORMCategoryRule,
)


def bank_statement_to_domain(orm_statement: ORMBankStatement) -> domain.BankStatement:
    """Convert SQLAlchemy BankStatement model to domain BankStatement entity."""
    return domain.BankStatement(
        id=orm_statement.id,
        document_id=orm_statement.document_id,
        account_name=orm_statement.account_name,
        created_at=orm_statement.created_at,
    )


def receipt_to_domain(orm_receipt: ORMReceipt) -> domain.FinancialEntry:
    """Convert SQLAlchemy Receipt model to a receipt FinancialEntry."""
    return domain.FinancialEntry(
        id=orm_receipt.id,
        entry_type=RECEIPT,
        merchant_name=orm_receipt.merchant_name,
        description=orm_receipt.description,
        amount=Decimal(orm_receipt.total_amount),
        date=orm_receipt.date,
        currency=orm_receipt.currency,
        category_id=orm_receipt.category_id,
        business_id=orm_receipt.business_id,
        flags=dict(orm_receipt.transaction_flags or {}),
        user_id=orm_receipt.user_id,
        document_id=orm_receipt.document_id,
        created_at=orm_receipt.created_at,
    )


def bank_transaction_to_domain(orm_transaction: ORMBankTransaction) -> domain.FinancialEntry:
    """Convert SQLAlchemy BankTransaction model to a bank-transaction FinancialEntry."""
    return domain.FinancialEntry(
        id=orm_transaction.id,
        entry_type=BANK_TRANSACTION,
        merchant_name=orm_transaction.merchant_name,
        description=orm_transaction.description,
        amount=Decimal(orm_transaction.amount),
        date=orm_transaction.transaction_date,
        currency=orm_transaction.currency,
        category_id=orm_transaction.category_id,
        business_id=orm_transaction.business_id,
        flags=dict(orm_transaction.transaction_flags or {}),
        bank_statement_id=orm_transaction.bank_statement_id,
        created_at=orm_transaction.created_at,
    )


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        name=orm_category.name,
        user_id=orm_category.user_id,
        category_type=orm_category.category_type,
        created_at=orm_category.created_at,
    )


def business_to_domain(orm_business: ORMBusiness) -> domain.Business:
    """Convert SQLAlchemy Business model to domain Business entity."""
    return domain.Business(
        id=orm_business.id,
        user_id=orm_business.user_id,
        name=orm_business.name,
        created_at=orm_business.created_at,
    )


def category_rule_to_domain(orm_rule: ORMCategoryRule) -> domain.CategoryRule:
    """Convert SQLAlchemy CategoryRule model to domain CategoryRule entity."""
    return domain.CategoryRule(
        id=orm_rule.id,
        user_id=orm_rule.user_id,
        field=orm_rule.field,
        match_type=orm_rule.match_type,
        value=orm_rule.value,
        category_id=orm_rule.category_id,
        business_id=orm_rule.business_id,
        display_name=orm_rule.display_name,
        is_enabled=orm_rule.is_enabled,
        source=orm_rule.source,
        created_from=orm_rule.created_from,
        created_at=orm_rule.created_at,
        updated_at=orm_rule.updated_at,
    )

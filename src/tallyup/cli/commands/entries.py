"""Commands for adding and listing receipts and bank transactions."""

import click

from tallyup.cli.error_handling import handle_domain_error
from tallyup.domain.constants import BANK_TRANSACTION, ENTRY_TYPES, RECEIPT
from tallyup.domain.errors import NotFoundError, ValidationError, statement_not_found
from tallyup.domain.flags import FlagBag
from tallyup.domain.rules import RuleService
from tallyup.utils.amount_parser import parse_amount
from tallyup.utils.date_parser import parse_date

ENTRY_TYPE_CHOICE = click.Choice(list(ENTRY_TYPES), case_sensitive=False)


def format_entry(entry) -> str:
    """One-line summary of an entry."""
    date_str = entry.date.isoformat() if entry.date else "----------"
    merchant = entry.merchant_name or "(no merchant)"
    line = f"{entry.entry_type:<16} {entry.id:>5}  {date_str}  {entry.amount:>10}  {merchant}"
    bag = FlagBag.from_dict(entry.flags)
    if bag.is_excluded_from_totals:
        line += f"  [{bag.exclusion_reason_text}]"
    return line


def parse_amount_option(ctx, amount: str):
    try:
        return parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount: {e}", err=True)
        ctx.exit(1)


def parse_date_option(ctx, value: str | None):
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid date: {e}", err=True)
        ctx.exit(1)


@click.group()
def receipt_group():
    """Manage receipts."""
    pass


@receipt_group.command("add")
@click.option("--merchant", help="Merchant name")
@click.option("--amount", required=True, help="Total amount (e.g. 12.50 or $1,234.00)")
@click.option("--date", "date_str", help="Receipt date (YYYY-MM-DD or 'yesterday')")
@click.option("--description", help="Description")
@click.option("--currency", default="USD", show_default=True)
@click.option("--category-id", type=int, help="Category ID")
@click.option("--business-id", type=int, help="Business ID")
@click.pass_context
def add_receipt(ctx, merchant, amount, date_str, description, currency, category_id, business_id):
    """Add a receipt."""
    db = ctx.obj["db"]
    user_id = ctx.obj["user_id"]

    total_amount = parse_amount_option(ctx, amount)
    if total_amount < 0:
        handle_domain_error(ctx, ValidationError("Receipt totals must not be negative"))
    service = RuleService(db)
    try:
        if category_id is not None:
            service.check_category(user_id, category_id)
        service.check_business(user_id, business_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    receipt_id = db.create_receipt(
        user_id=user_id,
        total_amount=total_amount,
        merchant_name=merchant,
        date=parse_date_option(ctx, date_str),
        description=description,
        currency=currency,
        category_id=category_id,
        business_id=business_id,
    )
    click.echo(f"Created receipt {receipt_id}")


@click.group()
def statement_group():
    """Manage bank statements."""
    pass


@statement_group.command("add")
@click.argument("filename")
@click.option("--account", "account_name", help="Account name")
@click.pass_context
def add_statement(ctx, filename, account_name):
    """Register a bank statement document."""
    db = ctx.obj["db"]
    document_id = db.create_document(ctx.obj["user_id"], filename)
    statement_id = db.create_bank_statement(document_id, account_name=account_name)
    click.echo(f"Created bank statement {statement_id}")


@click.group()
def txn_group():
    """Manage bank transactions."""
    pass


@txn_group.command("add")
@click.option("--statement-id", type=int, required=True, help="Bank statement ID")
@click.option("--amount", required=True, help="Amount; debits are negative")
@click.option("--merchant", help="Merchant name")
@click.option("--date", "date_str", help="Transaction date")
@click.option("--description", help="Statement description")
@click.option("--currency", default="USD", show_default=True)
@click.pass_context
def add_transaction(ctx, statement_id, amount, merchant, date_str, description, currency):
    """Add a bank transaction to one of your statements."""
    db = ctx.obj["db"]
    if db.get_bank_statement(statement_id, ctx.obj["user_id"]) is None:
        handle_domain_error(ctx, NotFoundError(statement_not_found(statement_id)))

    transaction_id = db.create_bank_transaction(
        bank_statement_id=statement_id,
        amount=parse_amount_option(ctx, amount),
        merchant_name=merchant,
        date=parse_date_option(ctx, date_str),
        description=description,
        currency=currency,
    )
    click.echo(f"Created bank transaction {transaction_id}")


@click.command("entries")
@click.option("--type", "entry_type", type=ENTRY_TYPE_CHOICE, help="Only list one kind")
@click.option("--start-date", help="Earliest date")
@click.option("--end-date", help="Latest date")
@click.pass_context
def list_entries(ctx, entry_type, start_date, end_date):
    """List receipts and bank transactions."""
    db = ctx.obj["db"]
    start = parse_date_option(ctx, start_date)
    end = parse_date_option(ctx, end_date)

    kinds = [entry_type.lower()] if entry_type else [RECEIPT, BANK_TRANSACTION]
    found = False
    for kind in kinds:
        for entry in db.list_entries(ctx.obj["user_id"], kind, start_date=start, end_date=end):
            click.echo(format_entry(entry))
            found = True
    if not found:
        click.echo("No entries found.")


def register_commands(cli):
    """Register entry commands with main CLI."""
    cli.add_command(receipt_group, name="receipt")
    cli.add_command(statement_group, name="statement")
    cli.add_command(txn_group, name="txn")
    cli.add_command(list_entries)

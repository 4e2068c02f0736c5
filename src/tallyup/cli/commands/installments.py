"""BNPL and installment plan credit commands."""

import click

from tallyup.cli.commands.entries import ENTRY_TYPE_CHOICE
from tallyup.cli.error_handling import handle_domain_error, report_missing
from tallyup.domain.constants import BANK_TRANSACTION
from tallyup.domain.errors import entry_not_found
from tallyup.domain.installments import BNPL_PROVIDERS, InstallmentService
from tallyup.utils.amount_parser import parse_amount


@click.group()
def bnpl_group():
    """Track buy-now-pay-later purchases."""
    pass


@bnpl_group.command("auto-detect")
@click.pass_context
def auto_detect_bnpl(ctx):
    """Flag entries whose merchant is a BNPL provider."""
    service = InstallmentService(ctx.obj["db"])
    result = service.auto_detect_bnpl(ctx.obj["user_id"])
    click.echo(f"Flagged {result.flagged_count} BNPL purchase(s)")


@bnpl_group.command("mark")
@click.argument("entry_type", type=ENTRY_TYPE_CHOICE)
@click.argument("entry_id", type=int)
@click.option("--provider", type=click.Choice(list(BNPL_PROVIDERS)), default="other", show_default=True)
@click.option("--original-amount", help="Full purchase amount")
@click.option("--remaining", "remaining_installments", type=int, help="Installments left to pay")
@click.pass_context
def mark_bnpl(ctx, entry_type, entry_id, provider, original_amount, remaining_installments):
    """Mark an entry as a BNPL purchase."""
    service = InstallmentService(ctx.obj["db"])
    entry_type = entry_type.lower()
    try:
        amount = parse_amount(original_amount) if original_amount else None
        updated = service.mark_as_bnpl(
            ctx.obj["user_id"],
            entry_type,
            entry_id,
            provider=provider,
            original_amount=amount,
            remaining_installments=remaining_installments,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    if not updated:
        report_missing(ctx, entry_not_found(entry_type, entry_id))
    click.echo(f"Marked {entry_type} {entry_id} as BNPL purchase ({provider})")


@bnpl_group.command("obligations")
@click.pass_context
def show_obligations(ctx):
    """Show what is still owed on BNPL purchases."""
    service = InstallmentService(ctx.obj["db"])
    obligations = service.get_bnpl_obligations(ctx.obj["user_id"])

    if not obligations.transactions:
        click.echo("No BNPL purchases found.")
        return

    for transaction in obligations.transactions:
        remaining = transaction.remaining_installments
        suffix = f"  {remaining} left" if remaining is not None else ""
        click.echo(f"{transaction.entry_type:<16} {transaction.id:>5}  {transaction.merchant_name}  "
                   f"{transaction.provider or 'other'}{suffix}")
    click.echo(f"\nUpcoming installments: {obligations.upcoming_installments}")
    click.echo(f"Total obligations: {obligations.total_obligations}")


@click.group()
def installment_credit_group():
    """Handle installment plan credits posted by card issuers."""
    pass


@installment_credit_group.command("auto-detect")
@click.pass_context
def auto_detect_credits(ctx):
    """Exclude bank credits that convert a purchase to an installment plan."""
    service = InstallmentService(ctx.obj["db"])
    result = service.auto_detect_installment_plan_credits(ctx.obj["user_id"])
    click.echo(f"Flagged {result.flagged_count} installment plan credit(s)")


@installment_credit_group.command("mark")
@click.argument("transaction_id", type=int)
@click.pass_context
def mark_credit(ctx, transaction_id):
    """Mark a bank transaction as an installment plan credit."""
    service = InstallmentService(ctx.obj["db"])
    if not service.mark_as_installment_plan_credit(ctx.obj["user_id"], transaction_id):
        report_missing(ctx, entry_not_found(BANK_TRANSACTION, transaction_id))
    click.echo(f"Marked bank transaction {transaction_id} as installment plan credit")


@installment_credit_group.command("unmark")
@click.argument("transaction_id", type=int)
@click.pass_context
def unmark_credit(ctx, transaction_id):
    """Remove the installment plan credit mark."""
    service = InstallmentService(ctx.obj["db"])
    if not service.unmark_as_installment_plan_credit(ctx.obj["user_id"], transaction_id):
        report_missing(ctx, entry_not_found(BANK_TRANSACTION, transaction_id))
    click.echo(f"Unmarked bank transaction {transaction_id}")


def register_commands(cli):
    """Register installment commands with main CLI."""
    cli.add_command(bnpl_group, name="bnpl")
    cli.add_command(installment_credit_group, name="installment-credit")

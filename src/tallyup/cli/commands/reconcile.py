"""Duplicate, transfer and exclusion commands."""

import click

from tallyup.cli.commands.entries import ENTRY_TYPE_CHOICE, format_entry
from tallyup.cli.error_handling import handle_domain_error, report_missing
from tallyup.domain.constants import BANK_TRANSACTION
from tallyup.domain.duplicates import DuplicateService
from tallyup.domain.errors import entry_not_found
from tallyup.domain.flag_state import FlagStateManager
from tallyup.domain.transfers import TRANSFER_TYPES, TransferService


@click.group()
def duplicates_group():
    """Find and mark duplicates between receipts and bank transactions."""
    pass


@duplicates_group.command("find")
@click.argument("entry_type", type=ENTRY_TYPE_CHOICE)
@click.argument("entry_id", type=int)
@click.pass_context
def find_duplicates(ctx, entry_type, entry_id):
    """Show possible duplicates of an entry."""
    service = DuplicateService(ctx.obj["db"])
    result = service.find_duplicates_for_entry(ctx.obj["user_id"], entry_type.lower(), entry_id)

    if not result.has_duplicates:
        click.echo("No duplicates found.")
        return

    for match in result.matches:
        marker = "*" if match is result.top_match else " "
        click.echo(f"{marker} {format_entry(match.entry)}")
        click.echo(f"    confidence {match.confidence:.2f}: {', '.join(match.reasons) or 'weak match'}")


@duplicates_group.command("mark")
@click.argument("entry_type", type=ENTRY_TYPE_CHOICE)
@click.argument("entry_id", type=int)
@click.option("--linked-type", type=ENTRY_TYPE_CHOICE, required=True, help="Kind of the original entry")
@click.option("--linked-id", type=int, required=True, help="ID of the original entry")
@click.option("--confidence", type=float, help="Detection confidence to record")
@click.pass_context
def mark_duplicate(ctx, entry_type, entry_id, linked_type, linked_id, confidence):
    """Mark an entry as a duplicate and exclude it from totals."""
    service = DuplicateService(ctx.obj["db"])
    entry_type = entry_type.lower()
    try:
        updated = service.mark_as_duplicate(
            ctx.obj["user_id"], entry_type, entry_id, linked_type.lower(), linked_id, confidence=confidence
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    if not updated:
        report_missing(ctx, entry_not_found(entry_type, entry_id))
    click.echo(f"Marked {entry_type} {entry_id} as duplicate of {linked_type.lower()} {linked_id}")


@duplicates_group.command("unmark")
@click.argument("entry_type", type=ENTRY_TYPE_CHOICE)
@click.argument("entry_id", type=int)
@click.pass_context
def unmark_duplicate(ctx, entry_type, entry_id):
    """Remove the duplicate mark from an entry."""
    service = DuplicateService(ctx.obj["db"])
    entry_type = entry_type.lower()
    if not service.unmark_as_duplicate(ctx.obj["user_id"], entry_type, entry_id):
        report_missing(ctx, entry_not_found(entry_type, entry_id))
    click.echo(f"Unmarked {entry_type} {entry_id}")


@click.group()
def transfers_group():
    """Detect and mark transfers between your own accounts."""
    pass


@transfers_group.command("detect")
@click.argument("transaction_id", type=int)
@click.pass_context
def detect_transfer(ctx, transaction_id):
    """Check whether a bank transaction is a transfer."""
    service = TransferService(ctx.obj["db"])
    result = service.detect_transfer_for_entry(ctx.obj["user_id"], transaction_id)

    if not result.is_transfer:
        click.echo("Not a transfer.")
        return

    click.echo(f"Transfer ({result.transfer_type}) detected by {result.detection_method}")
    for match in result.matches:
        click.echo(f"  {format_entry(match.entry)}  {match.reason}")


@transfers_group.command("mark")
@click.argument("transaction_id", type=int)
@click.option(
    "--type",
    "transfer_type",
    type=click.Choice(list(TRANSFER_TYPES)),
    default="internal",
    show_default=True,
    help="Transfer type",
)
@click.pass_context
def mark_transfer(ctx, transaction_id, transfer_type):
    """Mark a bank transaction as a transfer."""
    service = TransferService(ctx.obj["db"])
    if not service.mark_as_internal_transfer(ctx.obj["user_id"], transaction_id, transfer_type):
        report_missing(ctx, entry_not_found(BANK_TRANSACTION, transaction_id))
    click.echo(f"Marked bank transaction {transaction_id} as {transfer_type} transfer")


@transfers_group.command("unmark")
@click.argument("transaction_id", type=int)
@click.pass_context
def unmark_transfer(ctx, transaction_id):
    """Remove the transfer mark from a bank transaction."""
    service = TransferService(ctx.obj["db"])
    if not service.unmark_as_internal_transfer(ctx.obj["user_id"], transaction_id):
        report_missing(ctx, entry_not_found(BANK_TRANSACTION, transaction_id))
    click.echo(f"Unmarked bank transaction {transaction_id}")


@transfers_group.command("auto-detect")
@click.pass_context
def auto_detect_transfers(ctx):
    """Flag transfers among your bank transactions by description."""
    service = TransferService(ctx.obj["db"])
    result = service.auto_detect_internal_transfers(ctx.obj["user_id"])
    click.echo(f"Flagged {result.flagged_count} transaction(s) as transfers")


@click.command("exclude")
@click.argument("entry_type", type=ENTRY_TYPE_CHOICE)
@click.argument("entry_id", type=int)
@click.option("--include", is_flag=True, help="Undo a manual exclusion")
@click.pass_context
def exclude_entry(ctx, entry_type, entry_id, include):
    """Exclude an entry from totals (or include it again)."""
    manager = FlagStateManager(ctx.obj["db"])
    entry_type = entry_type.lower()
    if not manager.set_excluded_from_totals(entry_type, entry_id, ctx.obj["user_id"], exclude=not include):
        report_missing(ctx, entry_not_found(entry_type, entry_id))
    action = "Included" if include else "Excluded"
    click.echo(f"{action} {entry_type} {entry_id}")


def register_commands(cli):
    """Register reconciliation commands with main CLI."""
    cli.add_command(duplicates_group, name="duplicates")
    cli.add_command(transfers_group, name="transfers")
    cli.add_command(exclude_entry)

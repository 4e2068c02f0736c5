"""Categorization, similar-transaction, category and business commands."""

import click

from tallyup.cli.commands.entries import ENTRY_TYPE_CHOICE, parse_date_option
from tallyup.cli.error_handling import handle_domain_error, report_missing
from tallyup.domain.categorization import CategorizationService
from tallyup.domain.constants import CATEGORY_TYPES
from tallyup.domain.errors import entry_not_found
from tallyup.domain.similar import SimilarTransactionService


@click.command("similar")
@click.argument("merchant")
@click.option("--start-date", help="Earliest date (default: 90 days ago)")
@click.option("--end-date", help="Latest date (default: 90 days ahead)")
@click.option("--exclude-type", type=ENTRY_TYPE_CHOICE, help="Kind of an entry to leave out")
@click.option("--exclude-id", type=int, help="ID of an entry to leave out")
@click.pass_context
def similar(ctx, merchant, start_date, end_date, exclude_type, exclude_id):
    """Show past entries with a merchant similar to MERCHANT."""
    service = SimilarTransactionService(ctx.obj["db"])
    user_id = ctx.obj["user_id"]
    options = dict(
        start_date=parse_date_option(ctx, start_date),
        end_date=parse_date_option(ctx, end_date),
        exclude_id=exclude_id,
        exclude_type=exclude_type.lower() if exclude_type else None,
    )

    transactions = service.find_similar_transactions(user_id, merchant, **options)
    if not transactions:
        click.echo("No similar transactions found.")
        return

    for tx in transactions:
        date_str = tx.date.isoformat() if tx.date else "----------"
        category = tx.category_name or "uncategorized"
        click.echo(f"{tx.entry_type:<16} {tx.id:>5}  {date_str}  {tx.amount:>10}  {tx.merchant_name}  [{category}]")

    stats = service.get_similar_transaction_stats(user_id, merchant, **options)
    click.echo(f"\n{stats.categorized_count} of {stats.total_count} categorized")
    if stats.most_common_category:
        click.echo(
            f"Most common category: {stats.most_common_category.name} ({stats.most_common_category.count})"
        )
    if stats.most_common_business:
        click.echo(
            f"Most common business: {stats.most_common_business.name} ({stats.most_common_business.count})"
        )


@click.command("categorize")
@click.argument("entry_type", type=ENTRY_TYPE_CHOICE)
@click.argument("entry_id", type=int)
@click.option("--category-id", type=int, help="Category to assign; without it a suggestion is shown")
@click.option("--business-id", type=int, help="Business to assign")
@click.option("--apply-to-future", is_flag=True, help="Also create a rule for this merchant")
@click.pass_context
def categorize(ctx, entry_type, entry_id, category_id, business_id, apply_to_future):
    """Suggest or assign a category for an entry."""
    db = ctx.obj["db"]
    user_id = ctx.obj["user_id"]
    service = CategorizationService(db)
    entry_type = entry_type.lower()

    try:
        if category_id is None:
            entry = db.get_entry(entry_type, entry_id, user_id)
            if entry is None:
                report_missing(ctx, entry_not_found(entry_type, entry_id))
            result = service.suggest_category(user_id, entry.merchant_name, entry.description)
            if result.category_id is None:
                click.echo("No suggestion.")
            else:
                click.echo(
                    f"Suggested: {result.category_name or result.category_id} "
                    f"({result.method}, confidence {result.confidence:.2f})"
                )
            return

        rule = service.assign_category(
            user_id, entry_type, entry_id, category_id, business_id=business_id, apply_to_future=apply_to_future
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Categorized {entry_type} {entry_id}")
    if rule is not None:
        click.echo(f"{'Updated' if rule.updated else 'Created'} rule {rule.rule_id}")


@click.group()
def category_group():
    """Manage categories."""
    pass


@category_group.command("list")
@click.pass_context
def list_categories(ctx):
    """List system categories and your own."""
    categories = ctx.obj["db"].list_categories(ctx.obj["user_id"])
    if not categories:
        click.echo("No categories found.")
        return
    for category in categories:
        scope = "system" if category.user_id is None else "custom"
        click.echo(f"{category.id:>4}  {category.name} ({category.category_type}, {scope})")


@category_group.command("create")
@click.argument("name")
@click.option("--type", "category_type", type=click.Choice(list(CATEGORY_TYPES), case_sensitive=False), default="expense", help="Category type (default: expense)")
@click.option("--system", is_flag=True, help="Create a category shared by all users")
@click.pass_context
def create_category(ctx, name, category_type, system):
    """Create a new category."""
    user_id = None if system else ctx.obj["user_id"]
    category_id = ctx.obj["db"].create_category(name, user_id=user_id, category_type=category_type.lower())
    click.echo(f"Created category '{name}' (ID: {category_id})")


@click.group()
def business_group():
    """Manage businesses."""
    pass


@business_group.command("create")
@click.argument("name")
@click.pass_context
def create_business(ctx, name):
    """Create a business to attribute entries to."""
    business_id = ctx.obj["db"].create_business(ctx.obj["user_id"], name)
    click.echo(f"Created business '{name}' (ID: {business_id})")


def register_commands(cli):
    """Register categorization commands with main CLI."""
    cli.add_command(similar)
    cli.add_command(categorize)
    cli.add_command(category_group, name="category")
    cli.add_command(business_group, name="business")

"""Categorization rule commands."""

import click

from tallyup.cli.error_handling import handle_domain_error
from tallyup.domain.constants import FIELD_MERCHANT_NAME, MATCH_CONTAINS, MATCH_TYPES, RULE_FIELDS
from tallyup.domain.rules import RuleService


@click.group()
def rule_group():
    """Manage categorization rules."""
    pass


@rule_group.command("list")
@click.option("--enabled-only", is_flag=True, help="Hide disabled rules")
@click.pass_context
def list_rules(ctx, enabled_only):
    """List your rules."""
    service = RuleService(ctx.obj["db"])
    rules = service.list_rules(ctx.obj["user_id"], enabled_only=enabled_only)
    if not rules:
        click.echo("No rules found.")
        return

    for rule in rules:
        state = "" if rule.is_enabled else "  (disabled)"
        name = f"  {rule.display_name}" if rule.display_name else ""
        click.echo(
            f"{rule.id:>4}  {rule.field} {rule.match_type} '{rule.value}' -> category {rule.category_id}{name}{state}"
        )


@rule_group.command("create")
@click.argument("value")
@click.option("--category-id", type=int, required=True, help="Category to assign")
@click.option("--business-id", type=int, help="Business to assign")
@click.option("--field", type=click.Choice(list(RULE_FIELDS)), default=FIELD_MERCHANT_NAME, show_default=True)
@click.option("--match", "match_type", type=click.Choice(list(MATCH_TYPES)), default=MATCH_CONTAINS, show_default=True)
@click.option("--name", "display_name", help="Display name")
@click.option("--disabled", is_flag=True, help="Create the rule disabled")
@click.pass_context
def create_rule(ctx, value, category_id, business_id, field, match_type, display_name, disabled):
    """Create a rule, or update your existing rule for the same value."""
    service = RuleService(ctx.obj["db"])
    try:
        result = service.upsert_rule(
            user_id=ctx.obj["user_id"],
            field=field,
            match_type=match_type,
            value=value,
            category_id=category_id,
            business_id=business_id,
            display_name=display_name,
            is_enabled=not disabled,
            source="cli",
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    verb = "Updated" if result.updated else "Created"
    click.echo(f"{verb} rule {result.rule_id}")


@rule_group.command("delete")
@click.argument("rule_id", type=int)
@click.pass_context
def delete_rule(ctx, rule_id):
    """Delete a rule."""
    service = RuleService(ctx.obj["db"])
    try:
        service.delete_rule(ctx.obj["user_id"], rule_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted rule {rule_id}")


def _set_enabled(ctx, rule_id: int, is_enabled: bool) -> None:
    service = RuleService(ctx.obj["db"])
    try:
        service.set_rule_enabled(ctx.obj["user_id"], rule_id, is_enabled)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"{'Enabled' if is_enabled else 'Disabled'} rule {rule_id}")


@rule_group.command("enable")
@click.argument("rule_id", type=int)
@click.pass_context
def enable_rule(ctx, rule_id):
    """Enable a rule."""
    _set_enabled(ctx, rule_id, True)


@rule_group.command("disable")
@click.argument("rule_id", type=int)
@click.pass_context
def disable_rule(ctx, rule_id):
    """Disable a rule."""
    _set_enabled(ctx, rule_id, False)


@rule_group.command("test")
@click.option("--merchant", help="Merchant name to test")
@click.option("--description", help="Description to test")
@click.pass_context
def try_rules(ctx, merchant, description):
    """Show which rule would categorize a merchant or description."""
    service = RuleService(ctx.obj["db"])
    result = service.categorize(ctx.obj["user_id"], merchant_name=merchant, description=description)
    if result.matched_rule_id is None:
        click.echo("No rule matches.")
        return
    click.echo(f"Rule {result.matched_rule_id} matches: {result.category_name or result.category_id}")


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")

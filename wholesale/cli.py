# wholesale/cli.py
from __future__ import annotations

import json
from typing import Dict, List, Tuple

import click
from flask import current_app
from flask.cli import ScriptInfo, with_appcontext

from wholesale.extensions import get_api
from wholesale.models.cart import CartFundraiser
from wholesale.services.api_client import WholesaleApiError
from wholesale.services.cart import CartStore, FileCartStorage, make_cart_line
from wholesale.services.cart_validation import remove_unavailable_items, validate_cart
from wholesale.services.conflict import ACTION_ADD, CartConflict, PendingAction
from wholesale.services.inventory import (
    get_item_available_quantity,
    get_max_quantity_for_item,
    get_stock_status_display,
    validate_cart_item_inventory,
)
from wholesale.services.options import unit_price, validate_selections


def _parse_options(pairs: Tuple[str, ...]) -> Dict[str, List[int]]:
    """``("3:7", "3:8", "4:1")`` -> ``{"3": [7, 8], "4": [1]}``"""
    out: Dict[str, List[int]] = {}
    for raw in pairs:
        group, sep, option = raw.partition(":")
        if not sep or not group.strip() or not option.strip().isdigit():
            raise click.BadParameter(f"expected GROUP:OPTION, got {raw!r}", param_hint="--option")
        out.setdefault(group.strip(), []).append(int(option))
    return out


def _file_cart() -> CartStore:
    cfg = current_app.config
    return CartStore(FileCartStorage(cfg["CART_FILE_PATH"]), storage_key=cfg.get("CART_STORAGE_KEY"))


def _fail(e: WholesaleApiError) -> None:
    raise click.ClickException(f"backend: {e.message}")


def _print_cart(cart: CartStore) -> None:
    if not cart.items:
        click.secho("Cart is empty", fg="yellow")
        return
    name = cart.fundraiser.name if cart.fundraiser else f"#{cart.current_fundraiser_id}"
    click.secho(f"Fundraiser: {name}", bold=True)
    for line in cart.items:
        opts = "; ".join(f"{k}: {v}" for k, v in line.selected_options.items())
        click.echo(f"  [{line.id}] {line.quantity} x {line.name} @ ${line.price:.2f}" + (f"  ({opts})" if opts else ""))
    click.echo(f"  {cart.item_count} line(s), {cart.total_quantity} unit(s), total ${cart.total:.2f}")
    if cart.error:
        click.secho(cart.error, fg="red")


@click.group("wholesale")
def wholesale_cli():
    """Wholesale storefront tools."""
    pass


@wholesale_cli.command("fundraisers")
@click.option("--all", "show_all", is_flag=True, help="Include inactive fundraisers.")
@with_appcontext
def fundraisers_cmd(show_all):
    """List fundraisers from the backend."""
    try:
        fundraisers = get_api().get_fundraisers()
    except WholesaleApiError as e:
        _fail(e)
    for f in fundraisers:
        if not show_all and not f.active:
            continue
        flag = "" if f.active else " (inactive)"
        click.echo(f"{f.slug:<28} {f.name}{flag}  items={f.item_count} participants={f.participant_count}")


@wholesale_cli.command("item")
@click.argument("item_id", type=int)
@click.option("--option", "options", multiple=True, help="GROUP_ID:OPTION_ID, repeatable.")
@click.option("--quantity", default=1, show_default=True, type=int)
@with_appcontext
def item_cmd(item_id, options, quantity):
    """Show availability and price of an item for a selection."""
    selection = _parse_options(options)
    try:
        item = get_api().get_item(item_id)
    except WholesaleApiError as e:
        _fail(e)

    available = get_item_available_quantity(item, selection)
    status = get_stock_status_display(available, item.low_stock_threshold or current_app.config["LOW_STOCK_THRESHOLD"])
    click.secho(f"{item.name} (tracking: {item.tracking_mode})", bold=True)
    click.echo(f"  unit price: ${unit_price(item, selection):.2f}")
    click.echo(f"  available:  {available} ({status.message})")
    click.echo(f"  max add:    {get_max_quantity_for_item(item, selection)}")

    problems = [e.message for e in validate_selections(item, selection)]
    problems += validate_cart_item_inventory(item, selection, quantity).errors
    for p in problems:
        click.secho(f"  ! {p}", fg="red")


@wholesale_cli.group("cart")
def cart_group():
    """Inspect and edit the command-line cart."""
    pass


@cart_group.command("show")
@click.option("--json", "as_json", is_flag=True)
@with_appcontext
def cart_show(as_json):
    cart = _file_cart()
    if as_json:
        click.echo(json.dumps(cart.summary(), indent=2))
    else:
        _print_cart(cart)


@cart_group.command("add")
@click.argument("slug")
@click.argument("item_id", type=int)
@click.option("--option", "options", multiple=True, help="GROUP_ID:OPTION_ID, repeatable.")
@click.option("--quantity", default=1, show_default=True, type=int)
@click.option("--switch", is_flag=True, help="Empty a cart from another fundraiser without asking.")
@with_appcontext
def cart_add(slug, item_id, options, quantity, switch):
    """Add ITEM_ID from fundraiser SLUG."""
    selection = _parse_options(options)
    api = get_api()
    try:
        fundraiser = CartFundraiser.from_fundraiser(api.get_fundraiser(slug))
        item = api.get_item(item_id)
    except WholesaleApiError as e:
        _fail(e)

    errors = [e.message for e in validate_selections(item, selection)]
    cart = _file_cart()
    existing = cart.existing_quantity(item.id, selection) if cart.current_fundraiser_id == fundraiser.id else 0
    errors += validate_cart_item_inventory(item, selection, quantity, existing).errors
    if errors:
        raise click.ClickException("; ".join(errors))

    conflict = CartConflict(cart)
    pending = PendingAction(ACTION_ADD, fundraiser, make_cart_line(item, selection, fundraiser.id), quantity)
    if not conflict.check(fundraiser, pending):
        data = conflict.conflict
        click.secho(
            f"Your cart has {data.item_count} item(s) from {data.current_fundraiser}.",
            fg="yellow",
        )
        if switch or click.confirm(f"Clear it and continue with {data.new_fundraiser}?", default=False):
            conflict.clear_and_continue()
        else:
            conflict.cancel_and_stay()
            click.echo("Cart unchanged.")
            return
    _print_cart(cart)


@cart_group.command("remove")
@click.argument("line_id")
@with_appcontext
def cart_remove(line_id):
    cart = _file_cart()
    if not cart.remove_item(line_id):
        raise click.ClickException(f"no cart line {line_id}")
    _print_cart(cart)


@cart_group.command("clear")
@with_appcontext
def cart_clear():
    _file_cart().clear()
    click.secho("Cart cleared", fg="bright_green")


@cart_group.command("validate")
@click.option("--fix", is_flag=True, help="Drop or adjust lines the backend flags.")
@with_appcontext
def cart_validate(fix):
    cart = _file_cart()
    if fix:
        summary = remove_unavailable_items(get_api(), cart)
        if summary is None:
            raise click.ClickException(cart.error or "Cart is empty")
        click.secho(summary.message, fg="bright_green")
        _print_cart(cart)
        return

    result = validate_cart(get_api(), cart)
    if result.valid:
        click.secho("Cart is valid", fg="bright_green")
    else:
        for m in result.messages:
            click.secho(f"  ! {m}", fg="red")
        raise click.exceptions.Exit(1)


@wholesale_cli.command("watch")
@click.option("--slug", default=None, help="Only events for this fundraiser.")
@with_appcontext
def watch_cmd(slug):
    """Print realtime wholesale events until interrupted."""
    from wholesale.services.realtime import WholesaleRealtime

    realtime = WholesaleRealtime.from_config(current_app.config)

    def _printer(kind: str):
        def _print(data):
            click.echo(f"[{kind}] {json.dumps(data, sort_keys=True)}")

        return _print

    if slug:
        realtime.subscribe_to_fundraiser(
            slug,
            on_order=_printer("order"),
            on_inventory=_printer("inventory"),
            on_participant=_printer("participant"),
        )
    else:
        realtime.subscribe_to_all(
            on_order=_printer("order"),
            on_inventory=_printer("inventory"),
            on_fundraiser=_printer("fundraiser"),
            on_participant=_printer("participant"),
        )

    if not realtime.connect():
        raise click.ClickException(f"could not connect to {realtime.url}")
    click.secho(f"Listening on {realtime.url} (Ctrl+C to stop)", fg="cyan")
    try:
        realtime.wait()
    except KeyboardInterrupt:
        pass
    finally:
        realtime.disconnect()


def main() -> None:
    from wholesale import create_app

    wholesale_cli.main(obj=ScriptInfo(create_app=create_app))

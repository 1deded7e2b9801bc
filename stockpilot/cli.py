"""Command-line interface for the StockPilot dashboard."""

import sys
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from functools import wraps
from pathlib import Path
from typing import Any, List, Optional, Tuple

import click
import yaml

from .api.stockpilot_client import StockPilotClient
from .models.draft import ProductDraft
from .models.returns import RETURN_STATUSES, ReturnPolicy
from .models.submission import SubmissionOutcome, SubmissionResult
from .scheduler import StockWatchScheduler
from .services.account_service import AccountService
from .services.app_store import AppStore
from .services.catalog_service import CatalogService, require_store
from .services.projector import (
    ALL_CATEGORIES,
    ViewFilters,
    clamp_page,
    format_price_range,
    paginate,
    summarize_sales,
)
from .services.restock_service import RestockComposer
from .services.return_service import ReturnComposer, ReturnDesk
from .services.sale_service import SaleComposer
from .services.store_service import StoreService
from .utils.config import get_config
from .utils.currency import get_currency_symbol
from .utils.exceptions import (
    BaseAppException,
    ConfigurationError,
    ConflictError,
    FormValidationError,
    NotFoundError,
)
from .utils.notifier import ClickNotifier


class Context:
    """Objects shared by the commands of one invocation."""

    def __init__(self, client: Optional[StockPilotClient] = None, app_store: Optional[AppStore] = None):
        self.config = get_config()
        self.notifier = ClickNotifier()
        self._client = client
        self._app_store = app_store
        self._catalog: Optional[CatalogService] = None

    @property
    def client(self) -> StockPilotClient:
        if self._client is None:
            self._client = StockPilotClient(self.config)
        return self._client

    @property
    def app_store(self) -> AppStore:
        if self._app_store is None:
            self._app_store = AppStore.load(self.config.state_file)
        return self._app_store

    @property
    def catalog(self) -> CatalogService:
        if self._catalog is None:
            self._catalog = CatalogService(self.client, self.app_store, self.notifier)
        return self._catalog

    def close(self) -> None:
        if self._catalog is not None:
            self._catalog.close()
        if self._client is not None:
            self._client.close()


pass_context = click.make_pass_decorator(Context)


def handle_errors(func):
    """Turn application errors into a red message and exit code 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except NotFoundError as e:
            click.echo(click.style(f"✗ Not found: {e.message}", fg="red"), err=True)
            sys.exit(1)
        except ConflictError as e:
            click.echo(click.style(f"✗ Conflict: {e.message}", fg="red"), err=True)
            sys.exit(1)
        except FormValidationError as e:
            click.echo(click.style(f"✗ {e.message}", fg="red"), err=True)
            for message in e.messages():
                if message != e.message:
                    click.echo(click.style(f"  - {message}", fg="red"), err=True)
            sys.exit(1)
        except ConfigurationError as e:
            click.echo(click.style(f"✗ Configuration error: {e.message}", fg="red"), err=True)
            sys.exit(1)
        except BaseAppException as e:
            click.echo(click.style(f"✗ Error: {e.message}", fg="red"), err=True)
            sys.exit(1)
        except click.ClickException:
            raise
        except Exception as e:
            click.echo(click.style(f"✗ Unexpected error: {str(e)}", fg="red"), err=True)
            sys.exit(1)
    return wrapper


def parse_items(values: Tuple[str, ...]) -> List[Tuple[str, Any]]:
    """``("v1=2", "v2=1")`` -> ``[("v1", 2), ("v2", 1)]``; bad numbers are kept for the validator."""
    items = []
    for value in values:
        reference_id, sep, quantity = value.partition("=")
        if not sep or not reference_id.strip():
            raise click.BadParameter(f"Expected ID=QUANTITY, got {value!r}", param_hint="--item")
        quantity = quantity.strip()
        try:
            items.append((reference_id.strip(), int(quantity)))
        except ValueError:
            items.append((reference_id.strip(), quantity))
    return items


def report(result: SubmissionResult) -> None:
    """Print the details the notifier does not show, then exit with the outcome."""
    if result.outcome == SubmissionOutcome.INVALID and result.validation_errors is not None:
        for message in result.validation_errors.messages():
            click.echo(click.style(f"  - {message}", fg="red"), err=True)
    elif result.outcome in (SubmissionOutcome.DUPLICATE, SubmissionOutcome.IN_FLIGHT):
        click.echo(click.style(f"⚠ {result.message}", fg="yellow"))

    if result.token:
        click.echo(f"Idempotency key: {result.token}")
    sys.exit(0 if result.success else 1)


def submit_with_retries(submit, retries: int) -> SubmissionResult:
    """Submit, then resubmit transient failures (network, rate limit, 5xx) under the same token."""
    result = submit()
    attempt = 0
    while result.retryable and attempt < retries:
        attempt += 1
        click.echo(click.style(f"Retrying ({attempt}/{retries})...", fg="yellow"))
        result = submit()
    return result


@click.group()
@click.version_option(version="1.0.0")
@click.pass_context
def cli(ctx):
    """
    StockPilot inventory and point-of-sale CLI.

    Browse the catalog of the active store and record sales, restocks
    and returns.
    """
    ctx.ensure_object(Context)
    ctx.call_on_close(ctx.obj.close)


# ----------------------------------------------------------------------
# Configuration and session
# ----------------------------------------------------------------------

@cli.command("config-info")
@pass_context
def config_info(obj: Context):
    """Display current configuration settings."""
    try:
        config = obj.config

        click.echo("Configuration Settings:")
        click.echo("=" * 60)
        click.echo()

        click.echo("Environment:")
        click.echo(f"  Environment:     {config.env.environment}")
        click.echo(f"  Log level:       {config.logging.level}")
        click.echo(f"  Log to file:     {config.env.log_to_file}")
        click.echo()

        token = config.env.stockpilot_api_token
        click.echo("StockPilot API:")
        click.echo(f"  URL:             {config.env.stockpilot_api_url}")
        click.echo(f"  Token:           {token[:10] + '...' if token else '(not set)'}")
        click.echo(f"  Timeout:         {config.api.timeout}s")
        click.echo(f"  Max retries:     {config.api.max_retries}")
        click.echo()

        click.echo("Session:")
        click.echo(f"  State file:      {config.state_file}")
        user = obj.app_store.user
        click.echo(f"  User:            {user.email if user else '(signed out)'}")
        click.echo(f"  Active store:    {obj.app_store.active_store_name() or '(none)'}")
        click.echo(f"  Watch interval:  {config.env.stock_watch_interval_minutes} minutes")
        click.echo()

    except Exception as e:
        click.echo(click.style(f"✗ Error loading config: {str(e)}", fg="red"), err=True)
        sys.exit(1)


@cli.command("test-connection")
@pass_context
def test_connection(obj: Context):
    """Check that the StockPilot API is reachable with the configured token."""
    click.echo("Testing API connection...")
    click.echo()

    try:
        store = obj.app_store.get_active_store()
        if store is not None:
            fetched = obj.client.get_store(store.store_id)
            click.echo(click.style(f"  ✓ Connected; active store is {fetched.store_name}", fg="green"))
        else:
            response = obj.client.get("/")
            if response.status_code >= 500:
                raise BaseAppException(f"Server answered HTTP {response.status_code}")
            click.echo(click.style(f"  ✓ Connected to {obj.config.env.stockpilot_api_url}", fg="green"))
        sys.exit(0)

    except BaseAppException as e:
        click.echo(click.style(f"  ✗ Connection failed: {e.message}", fg="red"), err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(click.style(f"  ✗ Connection failed: {str(e)}", fg="red"), err=True)
        sys.exit(1)


@cli.command()
@click.argument("email")
@pass_context
@handle_errors
def login(obj: Context, email: str):
    """
    Sign in as the dashboard user with EMAIL and load their stores.

    The default store (or the only one) becomes the active store.
    """
    user = obj.client.find_user(email.strip())
    obj.app_store.set_user(user)
    stores = obj.client.list_stores(user.business_id) if user.business_id else []
    obj.app_store.set_stores(stores)

    click.echo(click.style(f"✓ Signed in as {user.name or user.email}", fg="green", bold=True))
    if not stores:
        click.echo(click.style("⚠ No stores found for this business", fg="yellow"))
        return

    default = next((s for s in stores if s.is_default), stores[0] if len(stores) == 1 else None)
    if default is not None:
        obj.app_store.set_active_store(default)
        click.echo(f"Active store: {default.store_name}")
    else:
        click.echo("Choose a store with `stockpilot use-store STORE_ID`:")
    for store in stores:
        click.echo(f"  {store.store_id}  {store.store_name}  {store.location}")


@cli.command()
@pass_context
def logout(obj: Context):
    """Forget the signed-in user and the active store."""
    obj.app_store.clear()
    click.echo(click.style("✓ Signed out", fg="green"))


@cli.command("use-store")
@click.argument("store_id")
@pass_context
@handle_errors
def use_store(obj: Context, store_id: str):
    """Make STORE_ID the active store."""
    store = next((s for s in obj.app_store.state.stores if s.store_id == store_id), None)
    if store is None:
        store = obj.client.get_store(store_id)
    obj.app_store.set_active_store(store)
    click.echo(click.style(f"✓ Active store: {store.store_name}", fg="green"))


# ----------------------------------------------------------------------
# Catalog
# ----------------------------------------------------------------------

@cli.command()
@click.option("--search", "-s", default="", help="Match name, brand or SKU")
@click.option("--category", "-c", default=ALL_CATEGORIES, show_default=True, help="Category filter")
@click.option("--page", "-p", default=1, show_default=True, type=int)
@pass_context
@handle_errors
def products(obj: Context, search: str, category: str, page: int):
    """List the products of the active store."""
    store = require_store(obj.app_store)
    symbol = get_currency_symbol(store.currency)
    view = obj.catalog.view(ViewFilters(search_text=search, category=category), page=page)

    if not view.rows:
        click.echo("No products found")
        return

    click.echo(f"{'NAME':<28} {'CATEGORY':<14} {'SKU':<14} {'STOCK':>6}  {'PRICE':<20} STATUS")
    click.echo("─" * 100)
    for row in view.rows:
        colour = {"Out of Stock": "red", "Low Stock": "yellow"}.get(row.status.value, "green")
        click.echo(
            f"{row.name[:28]:<28} {row.category[:14]:<14} {row.sku[:14]:<14} {row.stock_total:>6}  "
            f"{format_price_range(row.price_range, symbol):<20} "
            + click.style(row.status.value, fg=colour)
        )
    click.echo("─" * 100)
    click.echo(f"Page {view.page} of {view.total_pages} ({view.total_items} products)")


@cli.command()
@click.argument("product_id")
@pass_context
@handle_errors
def product(obj: Context, product_id: str):
    """Show one product and its variants."""
    store = require_store(obj.app_store)
    symbol = get_currency_symbol(store.currency)
    item = obj.catalog.get_product(product_id)

    click.echo(click.style(item.name, bold=True))
    click.echo(f"Brand:     {item.brand}")
    click.echo(f"Category:  {item.category}")
    if item.tags:
        click.echo(f"Tags:      {', '.join(item.tags)}")
    click.echo()
    for variant in item.variants:
        threshold = variant.low_stock_quantity
        click.echo(
            f"  {variant.id}  {variant.name:<20} {variant.sku:<14} {symbol}{variant.final_price:.2f}  "
            f"stock {variant.quantity} (low at {threshold if threshold is not None else '-'})"
        )


@cli.command("delete-product")
@click.argument("product_id")
@click.confirmation_option(prompt="Delete this product?")
@pass_context
@handle_errors
def delete_product(obj: Context, product_id: str):
    """Delete PRODUCT_ID from the business."""
    response = obj.catalog.delete_product(product_id)
    click.echo(click.style(f"✓ {response.get('message') or 'Product deleted'}", fg="green"))


@cli.command()
@pass_context
@handle_errors
def categories(obj: Context):
    """List the product categories of the active store."""
    for name in obj.catalog.categories():
        click.echo(name)


@cli.command("create-product")
@click.argument("draft_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--retries", default=0, show_default=True, type=int,
              help="Resubmit with the same idempotency key after a failure")
@pass_context
@handle_errors
def create_product(obj: Context, draft_file: Path, retries: int):
    """
    Create a product from a YAML draft.

    Image paths in the draft are relative to the draft file.
    """
    with open(draft_file, "r") as f:
        data = yaml.safe_load(f) or {}
    draft = ProductDraft.from_dict(data, base_dir=draft_file.parent)
    report(submit_with_retries(lambda: obj.catalog.create_product(draft), retries))


@cli.command("low-stock")
@click.option("--page", "-p", default=1, show_default=True, type=int)
@pass_context
@handle_errors
def low_stock(obj: Context, page: int):
    """List low and out of stock variants of the active store."""
    view = obj.catalog.low_stock(page)
    if not view.rows:
        click.echo(click.style("✓ No low or out of stock items", fg="green"))
        return
    for item in view.rows:
        colour = "red" if item.status == "Out of Stock" else "yellow"
        click.echo(
            f"{item.product_name[:24]:<24} {item.variant_name[:16]:<16} {item.sku:<14} {item.stock:>5}  "
            + click.style(item.status, fg=colour)
        )
    click.echo(f"Page {view.page} of {view.total_pages} ({view.total_items} variants)")


@cli.command()
@click.option("--search", "-s", default="", help="Match product name")
@click.option("--date", "day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Calendar day (YYYY-MM-DD), today when omitted")
@click.option("--page", "-p", default=1, show_default=True, type=int)
@pass_context
@handle_errors
def sales(obj: Context, search: str, day: Optional[datetime], page: int):
    """List the sale lines of one day with the day's revenue."""
    store = require_store(obj.app_store)
    symbol = get_currency_symbol(store.currency)
    selected_day = day.date() if day else date.today()

    lines = obj.client.list_sales(store.store_id, selected_day)
    summary = summarize_sales(lines, search, selected_day)
    size = obj.config.views.sales_page_size
    total_pages = paginate(summary.items, 1, size).total_pages
    view = paginate(summary.items, clamp_page(page, total_pages), size)

    for item in view.rows:
        click.echo(
            f"{item.product_name[:24]:<24} {item.variant_name[:16]:<16} x{item.quantity:<4} "
            f"{symbol}{item.total_price:.2f}"
        )
    click.echo("─" * 60)
    click.echo(f"Revenue {selected_day.isoformat()}: {symbol}{summary.total_revenue:.2f} "
               f"({len(summary.items)} lines, page {view.page} of {max(view.total_pages, 1)})")


# ----------------------------------------------------------------------
# Mutations
# ----------------------------------------------------------------------

@cli.command()
@click.option("--item", "-i", "items", multiple=True, required=True, help="VARIANT_ID=QUANTITY")
@click.option("--customer", default="", help="Customer name")
@click.option("--phone", default="", help="Customer phone")
@click.option("--email", default="", help="Customer e-mail")
@click.option("--payment", default="", help="Payment method (cash, card, transfer)")
@click.option("--retries", default=0, show_default=True, type=int,
              help="Resubmit with the same idempotency key after a failure")
@pass_context
@handle_errors
def sell(obj: Context, items, customer: str, phone: str, email: str, payment: str, retries: int):
    """Record a sale in the active store."""
    composer = SaleComposer(obj.client, obj.app_store, obj.catalog, obj.notifier)
    for variant_id, quantity in parse_items(items):
        composer.set_quantity(variant_id, quantity)
    composer.set_customer_name(customer)
    composer.set_customer_phone(phone)
    composer.set_customer_email(email)
    composer.set_payment_method(payment)

    store = require_store(obj.app_store)
    symbol = get_currency_symbol(store.currency)
    for line in composer.line_items():
        click.echo(f"  {line.label:<40} x{line.quantity}  {symbol}{line.subtotal:.2f}")
    click.echo(f"Total: {symbol}{composer.total():.2f}")

    report(submit_with_retries(composer.submit, retries))


@cli.command()
@click.option("--item", "-i", "items", multiple=True, required=True, help="VARIANT_ID=QUANTITY")
@click.option("--retries", default=0, show_default=True, type=int,
              help="Resubmit with the same idempotency key after a failure")
@pass_context
@handle_errors
def restock(obj: Context, items, retries: int):
    """Add received stock to variants of the active store."""
    composer = RestockComposer(obj.client, obj.app_store, obj.catalog, obj.notifier)
    for variant_id, quantity in parse_items(items):
        composer.set_quantity(variant_id, quantity)

    for row in composer.preview():
        if row["current"] is None:
            click.echo(click.style(f"  {row['label']}: not in this store's catalog", fg="yellow"))
        else:
            click.echo(f"  {row['label']:<40} {row['current']} -> {row['after']}  ({row['status'].value})")

    report(submit_with_retries(composer.submit, retries))


@cli.command("return")
@click.argument("sale_code")
@click.option("--item", "-i", "items", multiple=True, help="SALE_ITEM_ID=QUANTITY")
@click.option("--reason", default="", help="Why the items are returned")
@click.option("--resolution", default="REFUND", show_default=True,
              type=click.Choice(["REFUND", "EXCHANGE", "STORE_CREDIT"], case_sensitive=False))
@click.option("--exchange", "exchange_variant", default=None, help="Variant handed out in exchange")
@click.option("--retries", default=0, show_default=True, type=int,
              help="Resubmit with the same idempotency key after a failure")
@pass_context
@handle_errors
def return_items(obj: Context, sale_code: str, items, reason: str, resolution: str,
                 exchange_variant: Optional[str], retries: int):
    """
    Return items of sale SALE_CODE.

    Without --item the purchased lines of the sale are listed.
    """
    composer = ReturnComposer(obj.client, obj.app_store, obj.notifier)
    policy = composer.load_policy()
    sale_items = composer.load_sale(sale_code)

    if not items:
        click.echo(f"Sale {sale_code} (returns within {policy.days_allowed} days, "
                   f"max {policy.max_items_per_return} items):")
        for sale_item in sale_items:
            click.echo(f"  {sale_item.id}  {sale_item.product_name} / {sale_item.variant_name}  "
                       f"x{sale_item.quantity}  {sale_item.total_price:.2f}")
        return

    for index, (sale_item_id, quantity) in enumerate(parse_items(items)):
        composer.add_item(sale_item_id, quantity)
        composer.set_reason(index, reason)
        composer.set_resolution(index, resolution)
        if exchange_variant:
            composer.set_exchange(index, exchange_variant)

    click.echo(f"Estimated refund: {composer.refund_estimate():.2f}")
    report(submit_with_retries(composer.submit, retries))


@cli.command()
@click.option("--interval", type=int, default=None, help="Minutes between reports")
@pass_context
@handle_errors
def watch(obj: Context, interval: Optional[int]):
    """Report low stock of the active store periodically (runs until stopped)."""
    require_store(obj.app_store)
    StockWatchScheduler(
        client=obj.client,
        app_store=obj.app_store,
        notifier=obj.notifier,
        interval_minutes=interval,
    ).start()


# ----------------------------------------------------------------------
# Accounts and stores
# ----------------------------------------------------------------------

@cli.command()
@click.option("--first-name", prompt=True)
@click.option("--last-name", prompt=True)
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--agree-to-terms", is_flag=True, default=False, help="Accept the terms and conditions")
@pass_context
@handle_errors
def signup(obj: Context, first_name: str, last_name: str, email: str, password: str, agree_to_terms: bool):
    """Create a dashboard account and sign in as it."""
    user = AccountService(obj.client, obj.app_store).sign_up(first_name, last_name, email, password, agree_to_terms)
    click.echo(click.style(f"✓ Account created for {user.name} <{user.email}>", fg="green", bold=True))
    click.echo("Register your business with `stockpilot register-business`.")


@cli.command("register-business")
@click.option("--business-name", prompt=True)
@click.option("--store-name", prompt=True)
@click.option("--currency", default="USD", show_default=True)
@click.option("--location", prompt=True)
@click.option("--owner-name", prompt=True)
@click.option("--email", prompt=True)
@click.option("--phone", prompt=True)
@click.option("--website", default="")
@click.option("--logo", type=click.Path(dir_okay=False, path_type=Path), required=True, help="Logo image file")
@pass_context
@handle_errors
def register_business(obj: Context, business_name: str, store_name: str, currency: str, location: str,
                      owner_name: str, email: str, phone: str, website: str, logo: Path):
    """Register the signed-in user's business with its first store."""
    fields = {
        "business_name": business_name,
        "store_name": store_name,
        "currency": currency,
        "location": location,
        "owner_name": owner_name,
        "email": email,
        "phone": phone,
        "website": website or None,
    }
    AccountService(obj.client, obj.app_store).register_business(fields, logo)
    click.echo(click.style(f"✓ Registered {business_name}", fg="green", bold=True))
    click.echo(f"Active store: {obj.app_store.active_store_name() or '(none)'}")


@cli.command()
@pass_context
@handle_errors
def stores(obj: Context):
    """List the stores of the business (the active one is starred)."""
    active = obj.app_store.active_store
    found = StoreService(obj.client, obj.app_store).refresh()
    if not found:
        click.echo("No stores found")
        return
    for store in found:
        mark = "*" if active is not None and store.store_id == active.store_id else " "
        click.echo(f"{mark} {store.store_id:<12} {store.store_name:<24} {store.currency:<5} {store.location}")


@cli.command("create-store")
@click.argument("name")
@click.option("--currency", default="USD", show_default=True)
@click.option("--location", default="")
@click.option("--logo-url", default="")
@pass_context
@handle_errors
def create_store(obj: Context, name: str, currency: str, location: str, logo_url: str):
    """Add a store called NAME to the business."""
    store = StoreService(obj.client, obj.app_store).create_store(name, currency, location, logo_url)
    click.echo(click.style(f"✓ Store created: {store.store_name} ({store.store_id})", fg="green"))


@cli.command("update-store")
@click.argument("store_id")
@click.option("--name", default=None)
@click.option("--address", default=None)
@click.option("--currency", default=None)
@click.option("--location", default=None)
@pass_context
@handle_errors
def update_store(obj: Context, store_id: str, name: Optional[str], address: Optional[str],
                 currency: Optional[str], location: Optional[str]):
    """Change the details of STORE_ID."""
    store = StoreService(obj.client, obj.app_store).update_store(
        store_id, name=name, address=address, currency=currency, location=location
    )
    click.echo(click.style(f"✓ Store updated: {store.store_name}", fg="green"))


@cli.command("delete-store")
@click.argument("store_id")
@click.confirmation_option(prompt="Delete this store?")
@pass_context
@handle_errors
def delete_store(obj: Context, store_id: str):
    """Delete STORE_ID from the business."""
    StoreService(obj.client, obj.app_store).delete_store(store_id)
    click.echo(click.style("✓ Store deleted successfully.", fg="green"))


@cli.command("store-user")
@click.argument("store_id")
@click.argument("user_id")
@click.option("--role", default=None, help="New role (owner, manager, staff)")
@click.option("--remove", is_flag=True, default=False, help="Remove the user from the store")
@pass_context
@handle_errors
def store_user(obj: Context, store_id: str, user_id: str, role: Optional[str], remove: bool):
    """Change the role of USER_ID in STORE_ID, or remove them."""
    service = StoreService(obj.client, obj.app_store)
    if remove:
        users = service.remove_user(store_id, user_id)
    elif role:
        users = service.set_role(store_id, user_id, role)
    else:
        raise click.UsageError("Pass --role ROLE or --remove")
    click.echo(click.style("✓ User updates saved!", fg="green"))
    for user in users:
        click.echo(f"  {user.id:<12} {user.name:<24} {user.email:<28} {user.role}")


@cli.command()
@click.argument("store_id")
@click.argument("email")
@click.option("--role", default="staff", show_default=True)
@pass_context
@handle_errors
def invite(obj: Context, store_id: str, email: str, role: str):
    """Invite EMAIL to join STORE_ID."""
    StoreService(obj.client, obj.app_store).invite(store_id, email, role)
    click.echo(click.style("✓ Invitation sent!", fg="green"))


# ----------------------------------------------------------------------
# Return review
# ----------------------------------------------------------------------

@cli.command()
@click.option("--status", default="all", show_default=True, type=click.Choice(("all",) + RETURN_STATUSES))
@click.option("--search", "-s", default="", help="Match item name or reason")
@pass_context
@handle_errors
def returns(obj: Context, status: str, search: str):
    """List the returns of the active store."""
    records = ReturnDesk(obj.client, obj.app_store).returns(status, search)
    if not records:
        click.echo("No returns found")
        return
    for record in records:
        created = record.created_at.strftime("%Y-%m-%d") if record.created_at else ""
        click.echo(f"{record.id:<12} {record.item_name[:24]:<24} x{record.quantity:<3} "
                   f"{record.resolution:<13} {record.status:<10} {created}  {record.reason}")


@cli.command("review-returns")
@click.argument("return_ids", nargs=-1)
@click.option("--approve/--reject", default=True, help="Approve (default) or reject the returns")
@pass_context
@handle_errors
def review_returns(obj: Context, return_ids: Tuple[str, ...], approve: bool):
    """Approve or reject RETURN_IDS."""
    ReturnDesk(obj.client, obj.app_store).review(return_ids, approve)
    verdict = "approved" if approve else "rejected"
    click.echo(click.style(f"✓ Selected returns {verdict}", fg="green"))


@cli.command()
@pass_context
@handle_errors
def credits(obj: Context):
    """List the store credits issued by the active store."""
    store = require_store(obj.app_store)
    symbol = get_currency_symbol(store.currency)
    issued = ReturnDesk(obj.client, obj.app_store).credits()
    if not issued:
        click.echo("No store credits")
        return
    for credit in issued:
        click.echo(f"{credit.id:<12} customer {credit.customer_id:<12} {symbol}{credit.amount:.2f} "
                   f"(used {symbol}{credit.used_amount:.2f}, balance {symbol}{credit.balance:.2f})  {credit.status}")


@cli.command("return-policy")
@click.option("--days", type=int, default=None, help="Days a purchase can be returned")
@click.option("--refund/--no-refund", default=None)
@click.option("--exchange/--no-exchange", default=None)
@click.option("--store-credit/--no-store-credit", default=None)
@click.option("--receipt/--no-receipt", default=None, help="Require a receipt")
@click.option("--restocking-fee", type=float, default=None)
@click.option("--max-items", type=int, default=None, help="Max items per return")
@click.option("--notes", default=None)
@pass_context
@handle_errors
def return_policy(obj: Context, days, refund, exchange, store_credit, receipt, restocking_fee, max_items, notes):
    """Show the return policy of the active store; options create or change it."""
    desk = ReturnDesk(obj.client, obj.app_store)
    store = require_store(obj.app_store)
    changes = {
        "days_allowed": days,
        "allow_refund": refund,
        "allow_exchange": exchange,
        "allow_store_credit": store_credit,
        "require_receipt": receipt,
        "restocking_fee": Decimal(str(restocking_fee)) if restocking_fee is not None else None,
        "max_items_per_return": max_items,
        "notes": notes,
    }
    changes = {k: v for k, v in changes.items() if v is not None}

    try:
        policy = obj.client.get_return_policy(store.store_id)
    except NotFoundError:
        if not changes:
            click.echo(click.style("⚠ No return policy yet; pass options to create one", fg="yellow"))
            return
        policy = ReturnPolicy()

    if changes:
        policy = desk.save_policy(replace(policy, **changes))
        click.echo(click.style("✓ Return policy saved", fg="green"))

    click.echo(f"Days allowed:        {policy.days_allowed}")
    click.echo(f"Refund:              {'yes' if policy.allow_refund else 'no'}")
    click.echo(f"Exchange:            {'yes' if policy.allow_exchange else 'no'}")
    click.echo(f"Store credit:        {'yes' if policy.allow_store_credit else 'no'}")
    click.echo(f"Receipt required:    {'yes' if policy.require_receipt else 'no'}")
    click.echo(f"Restocking fee:      {policy.restocking_fee:.2f}")
    click.echo(f"Max items per return: {policy.max_items_per_return}")
    if policy.notes:
        click.echo(f"Notes:               {policy.notes}")


# ----------------------------------------------------------------------
# Overview
# ----------------------------------------------------------------------

@cli.command()
@pass_context
@handle_errors
def overview(obj: Context):
    """Inventory figures and best sellers of the active store."""
    store = require_store(obj.app_store)
    symbol = get_currency_symbol(store.currency)
    kpis = obj.client.inventory_kpis(store.store_id)

    click.echo(click.style(store.store_name, bold=True))
    click.echo(f"  Total items:   {kpis.total_items}")
    click.echo(f"  Low stock:     {kpis.low_stock_count}")
    click.echo(f"  Out of stock:  {kpis.out_of_stock_count}")

    for name, value in obj.client.sale_kpis(store.store_id).items():
        if not isinstance(value, (dict, list)):
            click.echo(f"  {name.replace('_', ' ').capitalize() + ':':<15}{value}")

    click.echo()
    click.echo("Top selling products:")
    top = obj.client.top_selling_products(store.store_id)
    if not top:
        click.echo("  No top selling products data available")
    for product in top:
        click.echo(f"  {product.name[:28]:<28} {product.units_sold:>5} units sold  {symbol}{product.revenue:.2f}")


if __name__ == "__main__":
    cli()

"""Ticktee CLI — check balances, send points, order and watch live events.

Usage:
    ticktee login admin                        # Prints an access token
    export TICKTEE_TOKEN=...
    ticktee me                                 # Who am I, how many points
    ticktee transfer 2 200 --reason gift       # Send 200 points to account #2
    ticktee transfers                          # Transfer history
    ticktee products                           # Catalog
    ticktee order 1 --quantity 2               # Buy product #1 twice
    ticktee listen                             # Stream realtime events
    ticktee seed                               # Demo accounts and products
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from ticktee import __version__
from ticktee.config import settings
from ticktee.events.types import ALL_EVENTS

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


def _api_url() -> str:
    return settings.api_url.rstrip("/")


def _ws_url(token: Optional[str]) -> str:
    base = _api_url()
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    url = base + settings.ws_path
    return f"{url}?token={token}" if token else url


def _token() -> Optional[str]:
    return os.environ.get("TICKTEE_TOKEN")


def _client(auth: bool = True) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Ticktee backend."""
    headers = {}
    token = _token()
    if auth:
        if not token:
            click.secho(
                "Error: not logged in (run `ticktee login` and set TICKTEE_TOKEN)",
                fg="red",
                err=True,
            )
            sys.exit(1)
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Inside an already running loop (CliRunner under pytest-asyncio) the
    coroutine is run on a worker thread instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str, ensure_ascii=False)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(
            str(row.get(k) if row.get(k) is not None else "-")[:w].ljust(w)
            for _, k, w in columns
        )
        click.echo(line)


def _fail_on_error(r: httpx.Response) -> None:
    """Print the API's error detail and exit non-zero on a 4xx/5xx."""
    if r.status_code < 400:
        return
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    if not isinstance(detail, str):
        detail = _pretty_json(detail)
    click.secho(f"Error ({r.status_code}): {detail}", fg="red", err=True)
    sys.exit(1)


def _status_color(status: str) -> str:
    colors = {
        "pending": "yellow",
        "shipped": "cyan",
        "delivered": "green",
        "cancelled": "red",
    }
    return colors.get(status, "white")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="ticktee")
def main():
    """Ticktee — spend and share points on tickets and merchandise."""


# ---------------------------------------------------------------------------
# ticktee login
# ---------------------------------------------------------------------------


@main.command()
@click.argument("username")
@click.password_option("--password", "-p", confirmation_prompt=False)
def login(username: str, password: str):
    """Log in and print an access token."""
    _run(_login_impl(username, password))


async def _login_impl(username: str, password: str):
    async with _client(auth=False) as c:
        r = await c.post(
            "/api/v1/auth/login", json={"username": username, "password": password}
        )
        _fail_on_error(r)
        token = r.json()["access_token"]

    click.secho(f"Logged in as {username}.", fg="green", err=True)
    click.echo(f"export TICKTEE_TOKEN={token}")


# ---------------------------------------------------------------------------
# ticktee me / balance
# ---------------------------------------------------------------------------


@main.command()
def me():
    """Show the current account."""
    _run(_me_impl())


async def _me_impl():
    async with _client() as c:
        r = await c.get("/api/v1/auth/me")
        _fail_on_error(r)
        account = r.json()

    role = click.style("admin", fg="magenta") if account["is_admin"] else "user"
    click.secho(f"#{account['id']}  {account['username']}  [{role}]", bold=True)
    if account.get("name"):
        click.echo(f"  Name:   {account['name']}")
    if account.get("email"):
        click.echo(f"  Email:  {account['email']}")
    click.echo(f"  Points: {account['points']}")


@main.command()
def balance():
    """Print the current point balance."""
    _run(_balance_impl())


async def _balance_impl():
    async with _client() as c:
        r = await c.get("/api/v1/auth/me")
        _fail_on_error(r)
        click.echo(r.json()["points"])


# ---------------------------------------------------------------------------
# ticktee transfer / transfers
# ---------------------------------------------------------------------------


@main.command()
@click.argument("to_account_id", type=int)
@click.argument("points", type=int)
@click.option("--reason", "-r", help="Note shown to the recipient")
def transfer(to_account_id: int, points: int, reason: Optional[str]):
    """Send POINTS to account TO_ACCOUNT_ID."""
    _run(_transfer_impl(to_account_id, points, reason))


async def _transfer_impl(to_account_id: int, points: int, reason: Optional[str]):
    async with _client() as c:
        body: dict = {"to_account_id": to_account_id, "points": points}
        if reason:
            body["reason"] = reason
        r = await c.post("/api/v1/point-transfers", json=body)
        _fail_on_error(r)
        record = r.json()

    click.secho(
        f"Sent {record['points']} points to account #{record['to_account_id']} "
        f"(transfer #{record['id']})",
        fg="green",
    )


@main.command()
def transfers():
    """List transfers you sent or received."""
    _run(_transfers_impl())


async def _transfers_impl():
    async with _client() as c:
        r = await c.get("/api/v1/point-transfers")
        _fail_on_error(r)
        records = r.json()

    if not records:
        click.echo("No transfers yet.")
        return

    click.secho(f"Transfers ({len(records)}):", bold=True)
    click.echo()
    _print_table(records, [
        ("ID", "id", 6),
        ("From", "from_account_id", 6),
        ("To", "to_account_id", 6),
        ("Points", "points", 8),
        ("Reason", "reason", 30),
        ("When", "created_at", 25),
    ])


# ---------------------------------------------------------------------------
# ticktee products / order
# ---------------------------------------------------------------------------


@main.command()
@click.option("--type", "product_type", type=click.Choice(["ticket", "tshirt"]),
              help="Only show one product type")
def products(product_type: Optional[str]):
    """List the catalog."""
    _run(_products_impl(product_type))


async def _products_impl(product_type: Optional[str]):
    async with _client(auth=False) as c:
        r = await c.get("/api/v1/products")
        _fail_on_error(r)
        items = r.json()

    if product_type:
        items = [p for p in items if p["type"] == product_type]
    if not items:
        click.echo("No products found.")
        return

    for p in items:
        p["stock_label"] = "unlimited" if p["unlimited"] else p["stock"]
    _print_table(items, [
        ("ID", "id", 6),
        ("Type", "type", 8),
        ("Price", "price", 8),
        ("Stock", "stock_label", 10),
        ("Sizes", "sizes", 12),
        ("Name", "name", 50),
    ])


@main.command()
@click.argument("product_id", type=int)
@click.option("--quantity", "-q", default=1, show_default=True, help="How many")
@click.option("--size", "-s", help="T-shirt size")
def order(product_id: int, quantity: int, size: Optional[str]):
    """Buy PRODUCT_ID with points."""
    _run(_order_impl(product_id, quantity, size))


async def _order_impl(product_id: int, quantity: int, size: Optional[str]):
    async with _client() as c:
        item: dict = {"product_id": product_id, "quantity": quantity}
        if size:
            item["size"] = size
        r = await c.post("/api/v1/orders", json={"items": [item]})
        _fail_on_error(r)
        placed = r.json()

    status_str = click.style(placed["status"], fg=_status_color(placed["status"]))
    click.secho(f"Order #{placed['id']} placed", fg="green", bold=True)
    click.echo(f"  Status: {status_str}")
    click.echo(f"  Total:  {placed['total_points']} points")


# ---------------------------------------------------------------------------
# ticktee listen
# ---------------------------------------------------------------------------


@main.command()
@click.option("--type", "-t", "event_types", multiple=True,
              help="Only print these frame types (repeatable)")
def listen(event_types: tuple[str, ...]):
    """Stream realtime frames until interrupted."""
    try:
        _run(_listen_impl(event_types))
    except KeyboardInterrupt:
        click.echo("Stopped.", err=True)


async def _listen_impl(event_types: tuple[str, ...]):
    from ticktee.client.connection import ConnectionManager

    manager = ConnectionManager(_ws_url(_token()))

    def show(message: dict) -> None:
        click.echo(_pretty_json(message))

    for event_type in event_types or (ALL_EVENTS,):
        manager.add_message_handler(event_type, show)

    click.secho(f"Listening on {manager.url.split('?')[0]} (Ctrl-C to stop)", err=True)
    manager.connect()
    try:
        await asyncio.Event().wait()
    finally:
        await manager.close()


# ---------------------------------------------------------------------------
# ticktee seed
# ---------------------------------------------------------------------------


@main.command()
@click.option("--create-tables", is_flag=True,
              help="Create missing tables first (dev databases without Alembic)")
def seed(create_tables: bool):
    """Insert demo accounts and products straight into the database."""
    added = _run(_seed_impl(create_tables))
    click.secho(
        f"Seeded {added['accounts']} account(s) and {added['products']} product(s).",
        fg="green",
    )


async def _seed_impl(create_tables: bool) -> dict[str, int]:
    from ticktee.db.engine import async_session_factory, engine
    from ticktee.db.models import Base
    from ticktee.seed import seed_database

    try:
        if create_tables:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        async with async_session_factory() as db:
            return await seed_database(db)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    main()

# cli.py - interactive point-of-sale terminal
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import requests
from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from sdk.posclient import PosClient

console = Console()
c = PosClient(base_url=os.getenv("POS_API_URL", "http://127.0.0.1:8085"))

# Global state for status messages and caching
status_message = "Ready"
current_user: Optional[Dict[str, Any]] = None
product_cache: List[Dict[str, Any]] = []

custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
})

PAYMENT_METHODS = ["cash", "card", "transfer"]
STATUSES = ["completed", "cancelled"]


def _error_message(e: Exception) -> str:
    """Prefer the API's ``message`` field over the raw HTTP error text."""
    response = getattr(e, "response", None)
    if response is not None:
        try:
            return response.json().get("message", str(e))
        except ValueError:
            return f"HTTP {response.status_code}"
    return str(e)


# ---------------------------
# Display helpers
# ---------------------------
def show_products(products: List[Dict[str, Any]]):
    if not products:
        console.print("[italic yellow]No products found[/italic yellow]")
        return

    table = Table(
        title="📦 Catalog",
        box=box.ROUNDED,
        header_style="bold cyan",
        title_style="bold magenta",
        show_lines=True
    )
    table.add_column("ID", style="dim", width=12)
    table.add_column("Name", style="bold", width=20)
    table.add_column("Category", width=14)
    table.add_column("Price", justify="right", width=10)
    table.add_column("Stock", justify="right", width=8)

    for p in products:
        stock = p.get("stock", 0)
        stock_style = "red" if stock <= 5 else "green"
        table.add_row(
            p.get("id", "N/A")[:12],
            p.get("name", "N/A"),
            p.get("category", "N/A"),
            f"${p.get('price', 0):.2f}",
            f"[{stock_style}]{stock}[/{stock_style}]"
        )
    console.print(table)


def show_sales(sales: List[Dict[str, Any]]):
    if not sales:
        console.print("[italic yellow]No sales found[/italic yellow]")
        return

    table = Table(
        title="🧾 Sales",
        box=box.ROUNDED,
        header_style="bold yellow",
        title_style="bold yellow",
        show_lines=True
    )
    table.add_column("Sale ID", style="dim", width=14)
    table.add_column("Seller", width=18)
    table.add_column("Contents", width=36)
    table.add_column("Payment", width=10)
    table.add_column("Status", width=11)
    table.add_column("Total", justify="right", width=10)

    for sale in sales:
        lines = sale.get("products", [])
        contents = ", ".join(f"{it.get('name', '?')} x{it.get('quantity', 0)}" for it in lines[:3])
        if len(lines) > 3:
            contents += f" +{len(lines) - 3} more"
        seller = sale.get("seller") or {}
        # update responses carry the bare seller id
        if isinstance(seller, str):
            seller = {"id": seller}
        status_style = "green" if sale.get("status") == "completed" else "red"
        table.add_row(
            sale.get("id", "N/A")[:12] + "...",
            seller.get("name") or seller.get("id", "?"),
            contents or "No items",
            sale.get("paymentMethod", "N/A"),
            f"[{status_style}]{sale.get('status', 'N/A')}[/{status_style}]",
            f"${sale.get('total', 0):.2f}"
        )
    console.print(table)


def show_alerts(alerts: Optional[List[Dict[str, Any]]]):
    if not alerts:
        return
    body = "\n".join(f"⚠️  {a['message']}" for a in alerts)
    console.print(Panel(body, title="Low stock", border_style="red"))


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


# ---------------------------
# API wrapper with exception handling
# ---------------------------
def try_api(fn, *args, success_msg: Optional[str] = None, **kwargs):
    """
    Calls fn(*args, **kwargs) behind a spinner.
    Returns the result, or None after printing the error.
    """
    global status_message
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            progress.add_task(description="Processing...", total=None)
            result = fn(*args, **kwargs)

        if success_msg:
            status_message = success_msg
            console.print(show_status(success_msg, True))
        return result
    except requests.exceptions.RequestException as e:
        status_message = f"Error: {_error_message(e)}"
        console.print(show_status(status_message, False))
        return None


# ---------------------------
# Input helpers with autocomplete
# ---------------------------
def get_product_completer():
    global product_cache
    if not product_cache:
        product_cache = try_api(c.list_products) or []
    ids = [p.get("id", "") for p in product_cache]
    return WordCompleter([i for i in ids if i], ignore_case=True)


def prompt_with_autocomplete(message: str, completer=None, default: str = ""):
    return prompt(f"{message} ", completer=completer, style=custom_style, default=default)


def ask_float(message: str, default: float = 10.0) -> float:
    while True:
        raw = Prompt.ask(message, default=str(default))
        try:
            return float(raw)
        except ValueError:
            console.print("[red]Please enter a valid number.[/red]")


def ask_basket() -> List[Tuple[str, int]]:
    """Collect basket lines until an empty product id is entered."""
    items: List[Tuple[str, int]] = []
    while True:
        pid = prompt_with_autocomplete(
            "Product ID (empty to finish)", completer=get_product_completer()
        ).strip()
        if not pid:
            return items
        qty = IntPrompt.ask("Quantity", default=1)
        items.append((pid, qty))


def create_header():
    header = Table(show_header=False, box=box.ROUNDED)
    header.add_column("left", width=30)
    header.add_column("center", width=40)
    header.add_column("right", width=30)

    who = f"{current_user['name']} ({current_user['role']})" if current_user else "not logged in"
    header.add_row(
        f"🧾 POS Ledger - {who}",
        "[bold blue]Point-of-sale terminal[/bold blue]",
        f"[dim]{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}[/dim]"
    )
    return Panel(header, style="bold blue")


# ---------------------------
# Actions
# ---------------------------
def do_login():
    global current_user, product_cache
    email = prompt_with_autocomplete("Email")
    password = prompt("Password ", is_password=True)
    resp = try_api(c.login, email, password, success_msg=f"Logged in as {email}")
    if resp:
        current_user = resp
        product_cache = []


def do_register():
    name = prompt_with_autocomplete("Name")
    email = prompt_with_autocomplete("Email")
    password = prompt("Password ", is_password=True)
    resp = try_api(c.register, name, email, password, success_msg=f"Registered {email}")
    if resp:
        console.print(Panel.fit(f"Role: [bold]{resp['role']}[/bold]"))


def do_create_product():
    global product_cache
    name = prompt_with_autocomplete("Product name")
    price = ask_float("💰 Price", default=10.0)
    stock = IntPrompt.ask("📦 Stock", default=1)
    category = prompt_with_autocomplete("🏷️ Category", default="general")
    resp = try_api(c.create_product, name, price, stock, category,
                   success_msg=f"Product '{name}' created")
    if resp:
        console.print(Panel(f"Created product: [green]{resp['product']['id']}[/green]"))
        product_cache = []


def do_sell():
    global status_message, product_cache
    items = ask_basket()
    if not items:
        console.print("[yellow]Empty basket, nothing to sell[/yellow]")
        return
    payment = prompt_with_autocomplete("Payment method", completer=WordCompleter(PAYMENT_METHODS),
                                       default="cash")
    resp = try_api(c.create_sale, items, payment)
    if resp is None:
        return
    body = resp.json()
    if resp.status_code == 201:
        sale = body["sale"]
        status_message = "Sale registered"
        console.print(Panel.fit(
            f"[green]Sale registered[/green]\n"
            f"Sale ID: [bold]{sale['id']}[/bold]\n"
            f"Total: [bold]${sale['total']:.2f}[/bold]",
            title="✅ Sale"
        ))
        show_alerts(body.get("alerts"))
        product_cache = []
    else:
        status_message = f"Error: {body.get('message', resp.status_code)}"
        console.print(Panel.fit(f"[red]Sale rejected:[/red] {body.get('message')}", title="❌ Sale"))


def do_list_sales():
    resp = try_api(c.list_sales, success_msg="Sales loaded")
    if resp:
        show_sales(resp.get("sales", []))
        show_alerts(resp.get("alerts"))


def do_change_sale():
    sale_id = prompt_with_autocomplete("Sale ID")
    status = prompt_with_autocomplete("New status (empty to keep)", completer=WordCompleter(STATUSES))
    payment = prompt_with_autocomplete("New payment method (empty to keep)",
                                       completer=WordCompleter(PAYMENT_METHODS))
    items = None
    if Confirm.ask("Replace the basket?", default=False):
        items = ask_basket()
    resp = try_api(c.update_sale, sale_id, items=items or None, payment_method=payment or None,
                   status=status or None, success_msg=f"Sale {sale_id} updated")
    if resp:
        show_sales([resp["sale"]])


def do_cancel_sale():
    sale_id = prompt_with_autocomplete("Sale ID")
    if Confirm.ask(f"[red]Delete sale {sale_id} and restore its stock?[/red]"):
        try_api(c.delete_sale, sale_id, success_msg=f"Sale {sale_id} deleted, stock restored")


# ---------------------------
# Main menu
# ---------------------------
def menu():
    global status_message, product_cache, current_user

    console.clear()
    console.print(create_header())

    actions = {
        "1": do_login,
        "2": do_register,
        "3": lambda: show_products(try_api(c.list_products, success_msg="Catalog loaded") or []),
        "4": do_create_product,
        "5": do_sell,
        "6": do_list_sales,
        "7": do_change_sale,
        "8": do_cancel_sale,
    }

    while True:
        if status_message:
            console.print(show_status(status_message, "Error" not in status_message))

        menu_table = Table.grid(padding=(0, 2))
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)

        options = [
            ("1", "🔑 Login", "5", "🛒 New sale"),
            ("2", "📝 Register", "6", "🧾 List sales"),
            ("3", "📦 List products", "7", "✏️ Change sale (admin)"),
            ("4", "➕ Create product (admin)", "8", "🗑️ Cancel sale (admin)"),
            ("9", "🔄 Reset (dev)", "q", "👋 Quit"),
        ]
        for row in options:
            menu_table.add_row(*row)

        console.print(Panel(menu_table, title="📋 Menu", border_style="yellow"))

        choice = prompt_with_autocomplete(
            "\nChoose an option",
            completer=WordCompleter([str(i) for i in range(1, 10)] + ["q", "quit", "exit"])
        ).strip()

        if choice in actions:
            actions[choice]()

        elif choice == "9":
            if Confirm.ask("[red]This will clear all data. Continue?[/red]"):
                try_api(c.reset, success_msg="Store reset")
                product_cache = []
                current_user = None

        elif choice.lower() in ("q", "quit", "exit"):
            if Confirm.ask("Are you sure you want to quit?"):
                console.print(Panel.fit("[bold green]Goodbye! 👋[/bold green]", title="Goodbye"))
                sys.exit(0)

        console.print()
        console.rule(style="dim")


def main():
    try:
        menu()
    except KeyboardInterrupt:
        console.print("\n\n[bold red]Interrupted by user[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()

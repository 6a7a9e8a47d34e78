"""Command handlers for CLI"""

import asyncio
from typing import Optional

from rich.console import Console

import settings
from accounts.store import AccountStore
from cli.status_display import build_accounts_table
from codex_oauth import (
    ACCOUNTS_UPDATED,
    EventBus,
    LoginFlow,
    OAuthError,
    RefreshScheduler,
)


def run_login(
    store: AccountStore,
    console: Console,
    name: Optional[str] = None,
    open_browser: bool = True,
    timeout: Optional[float] = None,
) -> int:
    """
    Run the browser login flow and store the resulting account

    Returns:
        Process exit code
    """
    flow = LoginFlow(
        port=settings.CALLBACK_PORT,
        host=settings.CALLBACK_HOST,
        callback_timeout=timeout if timeout is not None else settings.CALLBACK_TIMEOUT,
        evict_port=settings.EVICT_PORT_OWNER,
    )

    def show_url(url: str) -> None:
        console.print("\n[bold]Step 1:[/bold] Complete the login in your browser")
        if not open_browser:
            console.print("Open this URL manually:")
        console.print(f"[dim]{url}[/dim]\n")
        console.print("[bold]Step 2:[/bold] Waiting for the redirect...")

    async def _login():
        try:
            return await flow.login(open_browser=open_browser, on_url=show_url)
        finally:
            await flow.close()

    try:
        tokens = asyncio.run(_login())
    except OAuthError as e:
        console.print(f"[red]Login failed:[/red] {e}")
        console.print("Run the login again to retry.")
        return 1

    try:
        account = store.add_from_tokens(tokens, name=name)
    except OSError as e:
        console.print(f"[red]Login succeeded but the account could not be saved:[/red] {e}")
        return 1

    console.print(f"[green][OK][/green] Logged in as [cyan]{account.name}[/cyan]")
    return 0


def show_accounts(store: AccountStore, console: Console) -> int:
    accounts = store.list()
    if not accounts:
        console.print("[yellow]No accounts yet. Run 'codex-accounts login' first.[/yellow]")
        return 0
    console.print(build_accounts_table(accounts))
    return 0


def run_refresh(store: AccountStore, console: Console, account_query: Optional[str] = None) -> int:
    """
    Refresh expiring accounts now, or force-refresh one account

    Returns:
        Process exit code
    """
    scheduler = RefreshScheduler(store, margin=settings.REFRESH_MARGIN)

    if account_query is None:
        refreshed = asyncio.run(scheduler.run_once())
        console.print(f"Refreshed {refreshed} account(s)")
        return 0

    account = store.find(account_query)
    if account is None:
        console.print(f"[red]No account matches[/red] {account_query}")
        return 1
    if not account.refresh_token:
        console.print(f"[red]Account {account.name} has no refresh token, login again[/red]")
        return 1

    if asyncio.run(scheduler.refresh_account(account)):
        console.print(f"[green][OK][/green] Refreshed [cyan]{account.name}[/cyan]")
        return 0
    console.print(f"[red]Refresh failed for {account.name}[/red] (see log)")
    return 1


def remove_account(store: AccountStore, console: Console, account_query: str) -> int:
    with store.lock:
        store.sync()
        account = store.find(account_query)
        if account is None:
            console.print(f"[red]No account matches[/red] {account_query}")
            return 1
        store.remove(account.id)
        store.save()
    console.print(f"Removed [cyan]{account.name}[/cyan]")
    return 0


def run_daemon(store: AccountStore, console: Console) -> int:
    """Run the background refresher until interrupted"""
    bus = EventBus()
    bus.subscribe(
        ACCOUNTS_UPDATED,
        lambda count: console.print(f"[green]Refreshed {count} account(s)[/green]"),
    )
    scheduler = RefreshScheduler(
        store,
        notifier=bus,
        interval=settings.REFRESH_INTERVAL,
        margin=settings.REFRESH_MARGIN,
    )

    console.print(f"Refreshing tokens every {settings.REFRESH_INTERVAL} seconds. Press Ctrl+C to stop.")
    asyncio.run(scheduler.run_forever())
    return 0

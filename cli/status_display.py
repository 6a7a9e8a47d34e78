"""Account status display for CLI"""

from typing import List

from rich.table import Table

from accounts.models import Account
from codex_oauth.expiry import token_expiry, utc_now


def format_time_until(account: Account) -> str:
    """Human readable time left on the access token"""
    expiry = token_expiry(account.auth_json)
    if expiry is None:
        return "unknown"

    seconds = (expiry - utc_now()).total_seconds()
    if seconds <= 0:
        return "expired"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{hours}h {minutes}m"


def build_accounts_table(accounts: List[Account]) -> Table:
    """
    Build a table of accounts

    Args:
        accounts: Accounts to show

    Returns:
        Rich table
    """
    table = Table(title="Accounts")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Email")
    table.add_column("Expires In")
    table.add_column("Last Refresh")
    table.add_column("Refreshable")

    for account in sorted(accounts, key=lambda a: a.name.lower()):
        time_left = format_time_until(account)
        style = "red" if time_left == "expired" else "green"
        table.add_row(
            account.id[:8],
            account.name,
            account.email or "-",
            f"[{style}]{time_left}[/{style}]",
            account.last_refresh or "-",
            "Yes" if account.refresh_token else "No",
        )

    return table

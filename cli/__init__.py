"""CLI package for codex-accounts

Command-line front end for logging in accounts and refreshing their tokens.
"""

from cli.main import main

__all__ = [
    "main",
]

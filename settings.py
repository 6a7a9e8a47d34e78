from pathlib import Path
from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

# Logging
LOG_LEVEL = config.get("LOG_LEVEL", "info")

# Loopback callback listener
# The port must match the redirect URI registered for the Codex client (1455)
CALLBACK_PORT = config.get("CALLBACK_PORT", 1455)
CALLBACK_HOST = config.get("CALLBACK_HOST", "127.0.0.1")
# Seconds to wait for the browser redirect before the login fails
CALLBACK_TIMEOUT = config.get("CALLBACK_TIMEOUT", 300)
# Kill whatever already listens on CALLBACK_PORT before binding it
EVICT_PORT_OWNER = config.get("EVICT_PORT_OWNER", True)

# Background refresh
REFRESH_INTERVAL = config.get("REFRESH_INTERVAL", 1800)
# Refresh tokens with less than this many seconds left
REFRESH_MARGIN = config.get("REFRESH_MARGIN", 600)

# Token endpoint timeouts
CONNECT_TIMEOUT = config.get("CONNECT_TIMEOUT", 10.0)
REQUEST_TIMEOUT = config.get("REQUEST_TIMEOUT", 30.0)

# Account storage
ACCOUNTS_FILE = config.get("ACCOUNTS_FILE", str(Path.home() / ".codex-accounts" / "accounts.json"))

"""
Codex OAuth constants (fixed identity provider, not user configurable)
"""

# OAuth Configuration
CLIENT_ID = "app_EMoamEEZ73f0CkXaXp7hrann"
AUTHORIZE_URL = "https://auth.openai.com/oauth/authorize"
TOKEN_URL = "https://auth.openai.com/oauth/token"
SCOPE = "openid profile email offline_access"

# Provider flow-variant flags sent with the authorization request
ORIGINATOR = "codex_vscode"

# id_token claim path for the ChatGPT account ID
AUTH_CLAIM_PATH = "https://api.openai.com/auth"
CHATGPT_ACCOUNT_ID_CLAIM = "chatgpt_account_id"

# Loopback callback listener (port must match the registered redirect URI)
DEFAULT_CALLBACK_PORT = 1455
OAUTH_CALLBACK_PATH = "/auth/callback"

# Used when the provider omits expires_in
DEFAULT_EXPIRES_IN = 3600

"""Data models for stored accounts"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass
class Account:
    """One logged-in account

    Attributes:
        id: Local identifier
        name: Display name (defaults to the account email)
        refresh_token: Refresh token used for silent renewal
        auth_json: Stored token record; fields other than the token set are
            kept untouched on refresh
        email: Email from the id_token, if known
        account_id: ChatGPT account ID from the id_token, if known
        created_at: RFC 3339 timestamp of the first login
        last_refresh: RFC 3339 timestamp of the last successful refresh
    """
    id: str
    name: str
    refresh_token: Optional[str] = None
    auth_json: Dict[str, Any] = field(default_factory=dict)
    email: Optional[str] = None
    account_id: Optional[str] = None
    created_at: Optional[str] = None
    last_refresh: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Account":
        auth_json = data.get("auth_json")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            refresh_token=data.get("refresh_token"),
            auth_json=auth_json if isinstance(auth_json, dict) else {},
            email=data.get("email"),
            account_id=data.get("account_id"),
            created_at=data.get("created_at"),
            last_refresh=data.get("last_refresh"),
        )

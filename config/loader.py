"""Settings lookup for codex-accounts

Every setting is read from a ``CODEX_ACCOUNTS_<NAME>`` environment variable,
falling back to the default given by ``settings.py``. A dotenv file can
supply those variables; real environment variables always win over it.

The dotenv file is the first of:
1. the ``env_path`` passed to ``ConfigLoader``
2. ``$CODEX_ACCOUNTS_ENV_FILE``
3. ``./.env``
4. ``~/.codex-accounts/.env``
"""

import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "CODEX_ACCOUNTS_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def _parse_str(raw: str) -> str:
    if raw.startswith("~"):
        return str(Path(raw).expanduser())
    return raw


# bool must come before int: isinstance(True, int) holds
_PARSERS: List[tuple] = [
    (bool, _parse_bool),
    (int, int),
    (float, float),
    (str, _parse_str),
]


def _parser_for(default: Any) -> Optional[Callable[[str], Any]]:
    for kind, parser in _PARSERS:
        if isinstance(default, kind):
            return parser
    return None


def _candidate_env_files(env_path: Optional[str], prefix: str) -> List[Path]:
    if env_path:
        return [Path(env_path)]
    candidates = []
    override = os.getenv(f"{prefix}ENV_FILE")
    if override:
        candidates.append(Path(override).expanduser())
    candidates.append(Path(".env"))
    candidates.append(Path.home() / ".codex-accounts" / ".env")
    return candidates


class ConfigLoader:
    """Typed access to ``CODEX_ACCOUNTS_*`` settings"""

    def __init__(self, env_path: Optional[str] = None, prefix: str = ENV_PREFIX):
        self.prefix = prefix
        self.env_file: Optional[Path] = None
        self._warned: Dict[str, str] = {}

        for candidate in _candidate_env_files(env_path, prefix):
            if candidate.is_file():
                load_dotenv(dotenv_path=candidate, override=False)
                self.env_file = candidate
                logger.debug(f"Loaded settings from {candidate}")
                break
        else:
            logger.debug("No dotenv file found, using environment variables and defaults")

    def get(self, name: str, default: Any) -> Any:
        """
        Read one setting.

        The raw value is converted to the type of ``default``; a value that
        does not convert is logged and the default is used instead. String
        defaults starting with ``~`` are expanded either way.

        Args:
            name: Setting name without the prefix
            default: Value used when the variable is unset or invalid
        """
        env_var = f"{self.prefix}{name}"
        raw = os.getenv(env_var)
        parser = _parser_for(default)

        if raw is None:
            return _parse_str(default) if isinstance(default, str) else default
        if parser is None:
            return raw

        try:
            return parser(raw)
        except ValueError:
            # Settings are read at import time; warn once per bad value
            if self._warned.get(env_var) != raw:
                self._warned[env_var] = raw
                logger.warning(f"Ignoring {env_var}={raw!r}, expected {type(default).__name__}; using {default!r}")
            return default


_config_loader: Optional[ConfigLoader] = None


def get_config_loader() -> ConfigLoader:
    """Shared loader used by ``settings``"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader

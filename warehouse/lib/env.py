"""Process environment helpers.

Covers ${VAR} expansion in connection settings, .env loading via
python-dotenv, and the host/user lookups the environment guard needs.
Host and identity are read here once and then passed around explicitly.
"""

from __future__ import annotations

import getpass
import os
import re
import socket
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv

__all__ = [
    "current_hostname",
    "current_identity",
    "expand_env_vars",
    "expand_options",
    "load_env_file",
]

ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")

IDENTITY_ENV_VAR = "DW_IDENTITY"
HOSTNAME_ENV_VAR = "DW_HOSTNAME"


def load_env_file(
    path: Optional[Union[str, Path]] = None,
    *,
    override: bool = False,
) -> bool:
    """Load a .env file (searching upwards from cwd when no path is given).

    Returns True if a file was found and loaded.
    """
    return load_dotenv(dotenv_path=path, override=override)


def expand_env_vars(value: str, *, strict: bool = False) -> str:
    """Expand ${VAR} and $VAR references in a string.

    Unset variables are left untouched unless ``strict`` is set, in which
    case a KeyError names the missing variable.

    Example:
        >>> os.environ["DW_HOST"] = "sql01"
        >>> expand_env_vars("${DW_HOST}:1433")
        'sql01:1433'
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1) or match.group(2)
        if var_name in os.environ:
            return os.environ[var_name]
        if strict:
            raise KeyError(f"Environment variable not set: {var_name}")
        return match.group(0)

    return ENV_VAR_PATTERN.sub(replacer, value)


def expand_options(options: Dict[str, Any], *, strict: bool = False) -> Dict[str, Any]:
    """Expand environment variables in every string value of a settings dict."""
    expanded: Dict[str, Any] = {}
    for key, value in options.items():
        if isinstance(value, str):
            expanded[key] = expand_env_vars(value, strict=strict)
        elif isinstance(value, dict):
            expanded[key] = expand_options(value, strict=strict)
        else:
            expanded[key] = value
    return expanded


def current_hostname() -> str:
    """Name of the executing host, lower-cased.

    DW_HOSTNAME overrides the socket lookup for containers whose
    generated host names carry no environment information.
    """
    return (os.environ.get(HOSTNAME_ENV_VAR) or socket.gethostname()).lower()


def current_identity() -> str:
    """Identity recorded against maintenance actions.

    DW_IDENTITY wins (scheduler service accounts), then the OS login.
    """
    identity = os.environ.get(IDENTITY_ENV_VAR)
    if identity:
        return identity
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"

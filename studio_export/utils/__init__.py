"""Shared helpers for studio-export."""

import os
import re
from datetime import date
from typing import Optional

from studio_export.constants import FALLBACK_TITLE_PREFIX, FILENAME_MAX_CHARS

# Whitespace touching a forbidden character is absorbed into its replacement.
_FORBIDDEN_FILENAME_CHARS = re.compile(r'\s*[<>:"/\\|?*]\s*')


def sanitize_filename(title: str) -> str:
    """Turn a conversation title into a safe markdown filename.

    Each occurrence of <>:"/\\|?* becomes one underscore; the result is trimmed
    and cut to 100 characters before ".md" is appended.

    >>> sanitize_filename('Chat: "Test"/2024')
    'Chat__Test__2024.md'
    """
    safe = _FORBIDDEN_FILENAME_CHARS.sub("_", title).strip()
    return safe[:FILENAME_MAX_CHARS] + ".md"


def fallback_title(today: Optional[date] = None) -> str:
    """Title used when the source offers none, e.g. AI_Studio_Export_2024-05-01."""
    return f"{FALLBACK_TITLE_PREFIX}{(today or date.today()).isoformat()}"


def preview(text: str, limit: int = 50) -> str:
    """Short single-line excerpt for log messages."""
    flat = " ".join(text.split())
    return flat if len(flat) <= limit else flat[:limit] + "..."


def expand_env_vars(config: object) -> object:
    """Recursively expand environment variables in config.

    Replaces ${VAR} patterns with environment variable values.

    Args:
        config: Configuration object (dict, list, str, or primitive)

    Returns:
        Configuration with all ${VAR} patterns replaced
    """
    if isinstance(config, dict):
        return {k: expand_env_vars(v) for k, v in config.items()}  # type: ignore[misc]
    if isinstance(config, list):
        return [expand_env_vars(item) for item in config]
    if isinstance(config, str):

        def replace_env_var(match: re.Match[str]) -> str:
            env_var = match.group(1)
            return os.getenv(env_var, match.group(0))

        return re.sub(r"\$\{([^}]+)\}", replace_env_var, config)
    return config

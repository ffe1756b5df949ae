"""String helpers for cleaning up device command output."""

from typing import Optional

_CONTROL_CHARS = str.maketrans("", "", "\n\t\r")


def rstrip(text: Optional[str]) -> Optional[str]:
    """Remove trailing whitespace, passing ``None`` through untouched."""
    if text is None:
        return None
    return text.rstrip()


def strip_control(text: Optional[str]) -> Optional[str]:
    """
    Remove every newline, tab and carriage return from a string.

    Args:
        text: Raw command output

    Returns:
        The string with all ``\\n``, ``\\t`` and ``\\r`` characters removed,
        or ``None`` if ``text`` was ``None``
    """
    if text is None:
        return None
    return text.translate(_CONTROL_CHARS)


def port_to_string(port: int) -> str:
    """Convert a port number to text, falling back to "22" if it is not a valid port."""
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        return "22"
    return str(port)

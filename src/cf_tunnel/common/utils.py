"""Utility functions shared by the setup stages."""

import re

# Port range constants
MIN_PORT = 1
MAX_PORT = 65535

DEFAULT_HTTP_PORT = 80


def validate_port(port: int, port_name: str = "Port") -> None:
    """Validate port number range.

    Args:
        port: Port number to validate
        port_name: Name of the port for error messages

    Raises:
        ValueError: If port is not in valid range (1-65535)
    """
    if not isinstance(port, int) or not (MIN_PORT <= port <= MAX_PORT):
        raise ValueError(f"{port_name} must be between {MIN_PORT} and {MAX_PORT}")


def parse_port(value: str) -> int:
    """Parse a decimal port string.

    Raises:
        ValueError: If value is not a number or out of range
    """
    if not re.fullmatch(r"\d{1,5}", value):
        raise ValueError(f"Port is not numeric: {value!r}")
    port = int(value)
    validate_port(port)
    return port


def split_list(value: str, separator: str = ",") -> list[str]:
    """Split a separated list, trimming tokens and dropping empty ones.

    Args:
        value: Raw list such as ``"web:3000,,api"``
        separator: Token separator

    Returns:
        Non-empty, stripped tokens in input order
    """
    return [token.strip() for token in value.split(separator) if token.strip()]


def tail_lines(text: str, count: int = 50) -> str:
    """Return the last count lines of text."""
    lines = text.splitlines()
    return "\n".join(lines[-count:])

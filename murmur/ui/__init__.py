"""Terminal output for the command-line front end."""

from .console import ConsoleManager, sanitize_json_value

__all__ = ["ConsoleManager", "sanitize_json_value"]

"""WireGuard tunnel control and terminal theme colours."""

__version__ = "0.1.0"
"""GitMind: drive git workflows from a menu-driven terminal UI."""

__version__ = "0.3.0"

"""GhostESP companion client over USB serial."""

__version__ = "0.1.0"

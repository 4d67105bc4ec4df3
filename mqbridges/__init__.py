"""Message types, settings parsers and publishing targets for broker bridges."""

__version__ = "0.1.0"
__all__ = ["messages", "options", "targets_stream"]
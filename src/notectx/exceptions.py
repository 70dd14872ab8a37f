"""Custom exceptions for notectx."""


class NoteContextError(Exception):
    """Base exception for all notectx errors."""


class ConfigError(NoteContextError):
    """Configuration-related errors."""


class GraphError(NoteContextError):
    """Note graph errors."""


class GraphLoadError(GraphError):
    """Raised when a note export cannot be turned into a graph."""

    def __init__(self, source: str, reason: str):
        self.source = source
        super().__init__(f"Cannot load note graph from {source}: {reason}")


class GraphQueryError(GraphError):
    """Raised by graph adapters when a lookup fails on the host side."""

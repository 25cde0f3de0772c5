"""Error types raised by the dump engine."""


class AbiDumpError(Exception):
    """Base class for all dump engine failures."""


class ParseError(AbiDumpError, ValueError):
    """Dump text could not be parsed (bad nesting, unknown target or alias, ...)."""

    def __init__(self, message: str, line_number: int = 0):
        if line_number:
            message = f"line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number


class ConflictError(ParseError):
    """The same entity was declared twice where it must be unique."""


class RenderError(AbiDumpError, ValueError):
    """Requested rendering mode would lose information."""


class InferenceError(AbiDumpError, RuntimeError):
    """No supported target is similar enough to infer a dump from."""

"""
Exceptions raised by the build engine.

Precondition errors are caller mistakes and are never retried here. Payload
and upstream errors come from the external generator path; the caller decides
whether to ask the generator again.
"""


class BrickMindError(Exception):
    """Base class for all engine errors."""
    pass


class EmptyPromptError(BrickMindError, ValueError):
    """Raised when a build is requested with an empty or whitespace prompt."""
    pass


class InvalidBudgetError(BrickMindError, ValueError):
    """Raised when the piece budget or count limit is below one."""
    pass


class InvalidDimensionsError(BrickMindError, ValueError):
    """Raised when a piece spec has a non-positive width, depth or height."""
    pass


class UpstreamError(BrickMindError):
    """Raised when the external generator could not be reached or failed."""
    pass


class PayloadFormatError(BrickMindError):
    """Raised when an external payload cannot be parsed into a piece list."""
    pass


class NoValidPiecesError(BrickMindError):
    """Raised when nothing usable is left after normalizing an external payload."""
    pass

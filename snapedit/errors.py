"""
Typed errors raised by the editing core.

Validation errors double as ``ValueError`` and backend/dispatch errors as
``RuntimeError`` so callers that only know the builtin hierarchy still
catch them.  Every pipeline call either returns a new state or raises one
of these; nothing is swallowed.
"""


class EditError(Exception):
    """Base class for every error raised by the editing core."""


class InvalidDimension(EditError, ValueError):
    """A width/height is non-numeric, non-positive, or rounds to zero."""


class OutOfRange(EditError, ValueError):
    """A percentage or quality value lies outside its allowed range."""


class EmptyRegion(EditError, ValueError):
    """A crop rectangle has no area left after clamping to the source."""


class MissingMatteColor(EditError, ValueError):
    """Flattening transparency was required but no background colour was given."""


class InvalidColor(EditError, ValueError):
    """A matte colour string could not be parsed."""


class NoOp(EditError):
    """Undo/redo requested at a history boundary.  Not a failure."""


class OperationInProgress(EditError, RuntimeError):
    """A second operation was dispatched while one is still outstanding."""


class BackendFailure(EditError, RuntimeError):
    """The pixel backend rejected the operation or raised."""

"""Error taxonomy for the negative-to-positive pipeline.

All of these are local to a single image job: the job that raises one is
marked failed and its siblings keep running.
"""


class NegPosError(Exception):
    """Base class for pipeline errors."""


class DecodeError(NegPosError):
    """Input file is missing, unreadable or not a supported image."""


class EncodeError(NegPosError):
    """Output file could not be written."""


class PreconditionError(NegPosError, ValueError):
    """Buffer or channel range violates a transform precondition."""

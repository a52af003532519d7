"""Extraction error taxonomy.

Every error here terminates one extraction attempt only. Callers recover them
at the attempt boundary and never emit partial output.
"""


class ExtractionError(RuntimeError):
    """Base class for a failed or aborted extraction attempt."""


class TurnListNotFoundError(ExtractionError):
    """The wire payload had no locatable turn list."""


class MalformedPayloadError(ExtractionError):
    """A turn list was located but one of its elements is not an array."""


class EmptyTranscriptError(ExtractionError):
    """The renderer received zero eligible turns."""


class ExtractionCancelledError(ExtractionError):
    """The session was cancelled by the caller."""


class ExtractionBusyError(ExtractionError):
    """A session was started while another one is still active."""

"""
streamclip error taxonomy.

Every failure a job can hit is a StreamclipError subclass with a stable
`code`. Batch summaries record the code and message; single-job callers
get the exception unchanged.

    InvalidWindowError   end <= start or unparsable instants (before any I/O)
    InvalidFeedError     feed slug unusable as a key segment (before any I/O)
    IndexFetchError      playlist transport failure (retryable)
    IndexFormatError     playlist is a variant/master or unparsable
    EmptySelectionError  valid window, no timestamped segments inside it
    AssemblyError        ffmpeg failed for one format
    DecodeError          WAV container cannot be turned into samples
    WriteError           destination persistence failed
    JobCancelledError    job aborted at a suspension point
"""


class StreamclipError(Exception):
    """Base class for all pipeline failures."""

    code = "STREAMCLIP_ERROR"


class InvalidWindowError(StreamclipError):
    code = "INVALID_WINDOW"


class InvalidFeedError(StreamclipError):
    code = "INVALID_FEED"


class IndexFetchError(StreamclipError):
    code = "INDEX_FETCH_FAILED"


class IndexFormatError(StreamclipError):
    code = "INDEX_FORMAT_UNSUPPORTED"


class EmptySelectionError(StreamclipError):
    """
    Raised when no segment falls inside the requested window.

    This is an expected outcome for arbitrary windows, not a system fault,
    and is never retried.
    """

    code = "EMPTY_SELECTION"


class AssemblyError(StreamclipError):
    """
    Raised when the transcoder fails for a single output format.

    Attributes:
        format: Format value the invocation was producing (e.g. "wav")
        exit_code: Process exit code, or None if it never launched or
            was killed at its deadline
    """

    code = "ASSEMBLY_FAILED"

    def __init__(self, format: str, exit_code: int | None, reason: str | None = None):
        self.format = format
        self.exit_code = exit_code
        self.reason = reason

        message = f"ffmpeg {format} exited {exit_code}"
        if reason:
            message = f"ffmpeg {format} failed: {reason}"
        super().__init__(message)


class DecodeError(StreamclipError):
    code = "DECODE_FAILED"


class WriteError(StreamclipError):
    code = "WRITE_FAILED"


class JobCancelledError(StreamclipError):
    code = "JOB_CANCELLED"

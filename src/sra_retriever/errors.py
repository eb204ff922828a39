"""Exception hierarchy shared by the metadata client and the download pipeline."""


class SraError(Exception):
    """Base class for every error raised by sra-retriever."""


class InvalidArgument(SraError, ValueError):
    """Caller supplied an empty or malformed query/accession. No I/O was attempted."""


class TransientIOError(SraError):
    """Network, HTTP or XML-envelope failure while talking to E-utilities. Retryable."""


class Cancelled(SraError):
    """The caller cancelled the operation."""


class ToolUnavailable(SraError):
    """The fasterq-dump binary cannot be located for this platform."""


class DownloadError(SraError):
    """Base class for classified fasterq-dump failures."""

    def __init__(self, message: str, accession: str = "", output: str = ""):
        super().__init__(message)
        self.accession = accession
        self.output = output


class NetworkError(DownloadError):
    pass


class NotFound(DownloadError):
    pass


class ExtractionPermissionError(DownloadError):
    pass


class GeneralFailure(DownloadError):
    pass

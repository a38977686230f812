from typing import Dict


class ResumakerError(Exception):
    """Base class for every error raised by the resume builder."""


class ResumeValidationError(ResumakerError):
    """Raised when the resume fails field-level validation."""

    def __init__(self, field_errors: Dict[str, str]):
        self.field_errors = dict(field_errors)
        super().__init__(f"Resume has {len(self.field_errors)} invalid field(s).")


class EmptyInputError(ResumakerError):
    """Raised when an AI flow is triggered without the text it needs."""


class FlowInProgressError(ResumakerError):
    """Raised when a flow is triggered while its loading flag is still set."""


class EntryNotFoundError(ResumakerError):
    """Raised for an unknown education/experience id or list index."""


class AiFlowError(ResumakerError):
    """Raised when the model call fails or its reply does not match the declared shape."""


class PreviewNotFoundError(ResumakerError):
    pass


class PreviewNotVisibleError(ResumakerError):
    pass


class InvalidCaptureError(ResumakerError):
    pass


class PdfExportError(ResumakerError):
    """
    The single user-facing export failure. The underlying cause is appended to
    the message and chained as `__cause__`.
    """

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Failed to generate PDF. {cause}")


class AiUnavailableError(ResumakerError):
    """Raised when an AI flow is requested but no Gemini client is configured."""

"""
DocScanner - Custom Exceptions Module

This module defines the error kinds raised by the scanning pipeline.
"""


class DocScannerError(Exception):
    """Base exception for all DocScanner errors.

    All custom exceptions inherit from this class to allow
    catching any DocScanner-specific error.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional technical details for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class DecodeFailure(DocScannerError):
    """Raised when input bytes cannot be decoded into a pixel buffer."""

    def __init__(self, reason: str | None = None, mime_type: str | None = None) -> None:
        """Initialize the exception.

        Args:
            reason: Optional reason why decoding failed
            mime_type: Optional declared MIME type of the input
        """
        self.reason = reason
        self.mime_type = mime_type

        msg = "Could not decode image"
        if reason:
            msg += f": {reason}"

        details = f"mime={mime_type}" if mime_type else None
        super().__init__(msg, details=details)


class BoundaryNotFound(DocScannerError):
    """Raised when no detection strategy located a document quadrilateral."""

    def __init__(self, strategies: list[str] | None = None) -> None:
        """Initialize the exception.

        Args:
            strategies: Names of the strategies that were tried
        """
        self.strategies = strategies or []

        details = None
        if self.strategies:
            details = f"tried={','.join(self.strategies)}"

        super().__init__("Document boundary not found", details=details)


class SingularTransform(DocScannerError):
    """Raised when a homography or warp matrix is not invertible."""

    def __init__(self, reason: str = "singular matrix", determinant: float | None = None) -> None:
        """Initialize the exception.

        Args:
            reason: Description of where the singularity was found
            determinant: Optional determinant that triggered the failure
        """
        self.reason = reason
        self.determinant = determinant

        details = None
        if determinant is not None:
            details = f"det={determinant:.3e}"

        super().__init__(f"Singular transform: {reason}", details=details)


class EncodeFailure(DocScannerError):
    """Raised when compression, thumbnail generation or assembly fails."""

    def __init__(self, reason: str | None = None, page_index: int | None = None) -> None:
        """Initialize the exception.

        Args:
            reason: Optional reason for the failure
            page_index: Optional index of the page that failed to embed
        """
        self.reason = reason
        self.page_index = page_index

        if page_index is not None:
            msg = f"Failed to encode page {page_index}"
        else:
            msg = "Failed to encode image"
        if reason:
            msg += f": {reason}"

        details = f"page_index={page_index}" if page_index is not None else None
        super().__init__(msg, details=details)


class ResourceExhausted(DocScannerError):
    """Raised when memory pressure blocks acceptance of new captures."""

    def __init__(self, usage_ratio: float | None = None, threshold: float | None = None) -> None:
        """Initialize the exception.

        Args:
            usage_ratio: Measured memory usage as a fraction of the budget
            threshold: Fraction above which captures are refused
        """
        self.usage_ratio = usage_ratio
        self.threshold = threshold

        msg = "Memory is running low; process or discard pages before capturing more"
        details = None
        if usage_ratio is not None:
            details = f"usage={usage_ratio:.0%}"
            if threshold is not None:
                details += f", threshold={threshold:.0%}"

        super().__init__(msg, details=details)


class ConfigurationError(DocScannerError):
    """Raised when a configuration value is outside its documented range."""

    def __init__(self, setting_name: str | None = None, reason: str | None = None) -> None:
        """Initialize the exception.

        Args:
            setting_name: Optional name of the problematic setting
            reason: Optional reason for the error
        """
        self.setting_name = setting_name
        self.reason = reason

        if setting_name:
            msg = f"Configuration error for '{setting_name}'"
        else:
            msg = "Configuration error"

        if reason:
            msg += f": {reason}"

        super().__init__(msg)


# Exception hierarchy summary:
# DocScannerError (base)
# ├── DecodeFailure        (page-fatal)
# ├── BoundaryNotFound     (recovered: full bounds)
# ├── SingularTransform    (recovered: skip correction)
# ├── EncodeFailure        (page-fatal / assembly-fatal)
# ├── ResourceExhausted    (blocks new captures only)
# └── ConfigurationError

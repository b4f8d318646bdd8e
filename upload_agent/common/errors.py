"""Exception hierarchy shared by the storage, imaging and upload layers."""

from __future__ import annotations


class UploadAgentError(Exception):
    """Base class for every error raised by the upload agent."""


class BucketNotConfiguredError(UploadAgentError):
    """Raised when no storage client is registered for the requested bucket."""

    def __init__(self, bucket_name: str) -> None:
        super().__init__(f"Storage client not found for bucket: {bucket_name}")
        self.bucket_name = bucket_name


class ValidationError(UploadAgentError):
    """Raised when caller input is rejected before reaching the provider."""


class InvalidFolderError(ValidationError):
    """Raised when a destination folder does not match the folder syntax."""


class InvalidContentTypeError(ValidationError):
    """Raised when an upload is attempted without a content type."""


class InvalidFileTypeError(ValidationError):
    """Raised when the content type of a buffer cannot be determined."""

    def __init__(self, message: str = "Invalid file type") -> None:
        super().__init__(message)


class UploadRejectedError(UploadAgentError):
    """Raised by the upload parser when a multipart request is refused."""

    status_code = 400
    error_code = "upload_rejected"


class InvalidMimeTypeError(UploadRejectedError):
    status_code = 415
    error_code = "invalid_mime_type"

    def __init__(self, content_type: str | None = None) -> None:
        super().__init__("Invalid mime type")
        self.content_type = content_type


class FileTooLargeError(UploadRejectedError):
    status_code = 413
    error_code = "file_too_large"

    def __init__(self, max_size: int) -> None:
        super().__init__("File too large")
        self.max_size = max_size


class PayloadTooLargeError(UploadRejectedError):
    status_code = 413
    error_code = "payload_too_large"

    def __init__(self, max_total_size: int) -> None:
        super().__init__("Upload too large")
        self.max_total_size = max_total_size


class TooManyFilesError(UploadRejectedError):
    error_code = "too_many_files"


class MalformedUploadError(UploadRejectedError):
    error_code = "malformed_multipart"


class MissingFileError(UploadRejectedError):
    error_code = "missing_file"


class ImageProcessingError(UploadAgentError):
    """Raised when an image cannot be decoded or re-encoded."""


class StorageError(UploadAgentError, RuntimeError):
    """Raised when object storage operations fail."""

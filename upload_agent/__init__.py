"""Upload agent: multipart parsing, image recompression and S3 object storage."""

from upload_agent.api.upload_parser import UploadParser, build_upload_dependency
from upload_agent.common.config import BucketConfig
from upload_agent.common.errors import (
    BucketNotConfiguredError,
    FileTooLargeError,
    ImageProcessingError,
    InvalidContentTypeError,
    InvalidFileTypeError,
    InvalidFolderError,
    InvalidMimeTypeError,
    PayloadTooLargeError,
    StorageError,
    UploadAgentError,
    UploadRejectedError,
    ValidationError,
)
from upload_agent.domain.uploads import MultiUpload, ReceivedFile, SingleUpload
from upload_agent.services.agent import UploadAgent, create_upload_agent

__all__ = [
    "BucketConfig",
    "BucketNotConfiguredError",
    "FileTooLargeError",
    "ImageProcessingError",
    "InvalidContentTypeError",
    "InvalidFileTypeError",
    "InvalidFolderError",
    "InvalidMimeTypeError",
    "MultiUpload",
    "PayloadTooLargeError",
    "ReceivedFile",
    "SingleUpload",
    "StorageError",
    "UploadAgent",
    "UploadAgentError",
    "UploadParser",
    "UploadRejectedError",
    "ValidationError",
    "build_upload_dependency",
    "create_upload_agent",
]

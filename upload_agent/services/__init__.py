from .agent import UploadAgent, create_upload_agent
from .object_service import (
    FOLDER_PATTERN,
    ObjectService,
    PresignRequest,
    UploadRequest,
    build_object_key,
    validate_folder,
)

__all__ = [
    "FOLDER_PATTERN",
    "ObjectService",
    "PresignRequest",
    "UploadAgent",
    "UploadRequest",
    "build_object_key",
    "create_upload_agent",
    "validate_folder",
]

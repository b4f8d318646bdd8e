"""In-memory multipart upload parsing for FastAPI routes.

``build_upload_dependency`` returns a dependency that streams the request
body through python-multipart, keeps every file part in memory, and
enforces a MIME allow-list and a per-file size ceiling before the route
body runs. The parsed files are stored on ``request.state.upload`` as a
``SingleUpload`` or ``MultiUpload``.
"""

import logging
from collections.abc import Collection
from typing import Any

from fastapi import HTTPException, Request
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from upload_agent.common.errors import (
    FileTooLargeError,
    InvalidMimeTypeError,
    MalformedUploadError,
    MissingFileError,
    PayloadTooLargeError,
    TooManyFilesError,
    UploadRejectedError,
)
from upload_agent.domain.uploads import (
    MultiUpload,
    ReceivedFile,
    ReceivedFiles,
    SingleUpload,
)

logger = logging.getLogger(__name__)

DEFAULT_PART_CONTENT_TYPE = "application/octet-stream"
# Plain (non-file) form fields are small by nature
MAX_FIELD_SIZE = 1024 * 1024


class _PartCollector:
    """Receives python-multipart callbacks and assembles parts."""

    def __init__(self, parser: "UploadParser") -> None:
        self._options = parser
        self.files: list[ReceivedFile] = []
        self.fields: dict[str, str] = {}
        self._headers: list[tuple[bytes, bytes]] = []
        self._header_field = b""
        self._header_value = b""
        self._name = ""
        self._filename: str | None = None
        self._content_type = DEFAULT_PART_CONTENT_TYPE
        self._skip = False
        self._data = bytearray()
        self._total = 0

    def callbacks(self) -> dict[str, Any]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
        }

    def on_part_begin(self) -> None:
        self._headers = []
        self._header_field = b""
        self._header_value = b""
        self._name = ""
        self._filename = None
        self._content_type = DEFAULT_PART_CONTENT_TYPE
        self._skip = False
        self._data = bytearray()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers.append((self._header_field.lower(), self._header_value))
        self._header_field = b""
        self._header_value = b""

    def on_headers_finished(self) -> None:
        headers = dict(self._headers)
        disposition = headers.get(b"content-disposition")
        if disposition is None:
            raise MalformedUploadError("Missing Content-Disposition header")
        _, options = parse_options_header(disposition)
        if b"name" not in options:
            raise MalformedUploadError("Content-Disposition header is missing a name")
        self._name = options[b"name"].decode("utf-8", errors="replace")

        raw_filename = options.get(b"filename")
        if raw_filename is None:
            return
        self._filename = raw_filename.decode("utf-8", errors="replace")

        field_name = self._options.field_name
        if field_name is not None and self._name != field_name:
            self._skip = True
            return

        raw_type = headers.get(b"content-type")
        if raw_type:
            self._content_type = (
                raw_type.decode("latin-1").split(";")[0].strip().lower()
            )
        self._options.check_mime(self._content_type)
        self._options.check_file_count(len(self.files) + 1)

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._skip:
            return
        self._data += data[start:end]
        if self._filename is None:
            if len(self._data) > MAX_FIELD_SIZE:
                raise MalformedUploadError(f"Form field {self._name!r} is too large")
            return
        self._total += end - start
        self._options.check_size(len(self._data))
        self._options.check_total_size(self._total)

    def on_part_end(self) -> None:
        if self._skip:
            return
        if self._filename is None:
            self.fields[self._name] = self._data.decode("utf-8", errors="replace")
            return
        if self._filename == "" and not self._data:
            # browsers send an empty part when no file was selected
            return
        self.files.append(
            ReceivedFile(
                field_name=self._name,
                filename=self._filename,
                content_type=self._content_type,
                data=bytes(self._data),
            )
        )


class UploadParser:
    """FastAPI dependency that buffers uploaded files in memory."""

    def __init__(
        self,
        *,
        allowed_mimes: Collection[str] | None = None,
        max_size: int | None = None,
        field_name: str | None = None,
        multiple: bool = False,
        max_files: int | None = None,
        max_total_size: int | None = None,
    ) -> None:
        if max_size is not None and max_size <= 0:
            raise ValueError("max_size must be positive")
        if max_total_size is not None and max_total_size <= 0:
            raise ValueError("max_total_size must be positive")
        if max_files is not None and max_files <= 0:
            raise ValueError("max_files must be positive")
        self.allowed_mimes = (
            frozenset(m.lower() for m in allowed_mimes)
            if allowed_mimes is not None
            else None
        )
        self.max_size = max_size
        self.field_name = field_name
        self.multiple = multiple
        self.max_files = max_files if multiple else 1
        self.max_total_size = max_total_size

    def check_mime(self, content_type: str) -> None:
        if self.allowed_mimes is None:
            return
        if content_type not in self.allowed_mimes:
            raise InvalidMimeTypeError(content_type)

    def check_size(self, size: int) -> None:
        if self.max_size is not None and size > self.max_size:
            raise FileTooLargeError(self.max_size)

    def check_total_size(self, total: int) -> None:
        if self.max_total_size is not None and total > self.max_total_size:
            raise PayloadTooLargeError(self.max_total_size)

    def check_file_count(self, count: int) -> None:
        if self.max_files is not None and count > self.max_files:
            if self.multiple:
                raise TooManyFilesError(f"Too many files (max {self.max_files})")
            raise TooManyFilesError("Expected a single file")

    async def __call__(self, request: Request) -> ReceivedFiles:
        try:
            upload, fields = await self.parse(request)
        except UploadRejectedError as exc:
            logger.warning(
                "upload rejected reason=%s path=%s",
                exc.error_code,
                request.url.path,
                extra={
                    "extra": {
                        "error_code": exc.error_code,
                        "route": request.url.path,
                    }
                },
            )
            raise HTTPException(
                status_code=exc.status_code,
                detail={"message": str(exc), "error_code": exc.error_code},
            ) from exc
        request.state.upload = upload
        request.state.form_fields = fields
        return upload

    async def parse(self, request: Request) -> tuple[ReceivedFiles, dict[str, str]]:
        """Parse the request body without raising HTTP errors."""
        content_type, params = parse_options_header(
            request.headers.get("content-type", "")
        )
        if content_type.lower() != b"multipart/form-data":
            raise MalformedUploadError("Expected a multipart/form-data request")
        boundary = params.get(b"boundary")
        if not boundary:
            raise MalformedUploadError("Missing multipart boundary")

        collector = _PartCollector(self)
        parser = MultipartParser(boundary, collector.callbacks())
        try:
            async for chunk in request.stream():
                if chunk:
                    parser.write(chunk)
            parser.finalize()
        except MultipartParseError as exc:
            raise MalformedUploadError(f"Malformed multipart body: {exc}") from exc

        if not collector.files:
            raise MissingFileError("No file was uploaded")
        if self.multiple:
            return MultiUpload(tuple(collector.files)), collector.fields
        return SingleUpload(collector.files[0]), collector.fields


def build_upload_dependency(
    allowed_mimes: Collection[str] | None = None,
    max_size: int | None = None,
    *,
    field_name: str | None = None,
    multiple: bool = False,
    max_files: int | None = None,
    max_total_size: int | None = None,
) -> UploadParser:
    """Build an upload dependency.

    Args:
        allowed_mimes: Accepted part content types. ``None`` accepts all.
        max_size: Per-file byte ceiling. ``None`` means unbounded.
        field_name: Only file parts with this form name are kept.
        multiple: Accept a batch of files instead of exactly one.
        max_files: Upper bound for the batch size when ``multiple`` is set.
        max_total_size: Byte ceiling for all file parts of one request.
    """
    return UploadParser(
        allowed_mimes=allowed_mimes,
        max_size=max_size,
        field_name=field_name,
        multiple=multiple,
        max_files=max_files,
        max_total_size=max_total_size,
    )

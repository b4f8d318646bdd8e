"""Files received from a multipart request.

A parsed request carries either exactly one file or an ordered batch of
files. The two shapes are separate types so consumers branch on the type
once instead of probing request attributes.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class ReceivedFile:
    """One uploaded part buffered in memory."""

    field_name: str
    filename: str | None
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class SingleUpload:
    file: ReceivedFile

    @property
    def files(self) -> tuple[ReceivedFile, ...]:
        return (self.file,)


@dataclass(frozen=True, slots=True)
class MultiUpload:
    files: tuple[ReceivedFile, ...]


ReceivedFiles = SingleUpload | MultiUpload

"""
Upload Intake: Stage a multipart CSV upload as a bounded temporary file.

The staged file holds plaintext credentials, so it must not outlive the
request: use ``staged_upload()`` which deletes it on every exit path.
"""
import os
import logging
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import IO, AsyncIterator, Optional

from aiohttp import BodyPartReader, web

from .conf import MAX_UPLOAD_SIZE, UPLOAD_EXTENSION, UPLOAD_PREFIX
from .exceptions import (
    PayloadTooLarge,
    TransferIOError,
    UnsupportedFileType,
    UploadRejected,
)

logger = logging.getLogger("passwall.backup")

FILE_FIELD = "file"
CHUNK_SIZE = 64 * 1024


@dataclass
class UploadedArtifact:
    """A staged upload: temp file rewound to its start plus form fields."""

    file: IO[bytes]
    path: str
    filename: str
    size: int = 0
    fields: dict[str, str] = field(default_factory=dict)

    def close(self) -> None:
        """Close and delete the temp file. Safe to call twice."""
        if not self.file.closed:
            self.file.close()
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
        else:
            logger.debug("Removed staged upload %s", os.path.basename(self.path))


def check_extension(filename: Optional[str]) -> None:
    """Raise UnsupportedFileType unless filename ends with .csv."""
    ext = os.path.splitext(filename or "")[1]
    if ext != UPLOAD_EXTENSION:
        raise UnsupportedFileType(ext)


class UploadIntake:
    """Validates and stages uploaded CSV files.

    Args:
        max_size: Request body limit in bytes.
        temp_dir: Directory for staged files (system default if None).
    """

    def __init__(self, max_size: int = MAX_UPLOAD_SIZE, temp_dir: Optional[str] = None):
        self.max_size = max_size
        self.temp_dir = temp_dir

    async def accept(self, request: web.Request) -> UploadedArtifact:
        """Read the multipart body and stage the ``file`` field.

        Raises:
            PayloadTooLarge: Body exceeds ``max_size``.
            UnsupportedFileType: Uploaded file is not a .csv.
            UploadRejected: Body is not multipart, has no file field, or a
                form field is not valid text.
            TransferIOError: Temp file could not be written.
        """
        if request.content_length is not None and request.content_length > self.max_size:
            raise PayloadTooLarge(self.max_size)
        try:
            reader = await request.multipart()
        except (KeyError, ValueError, AssertionError) as err:
            raise UploadRejected("request body is not multipart/form-data") from err

        received = 0
        fields: dict[str, str] = {}
        artifact: Optional[UploadedArtifact] = None
        try:
            async for part in reader:
                if not isinstance(part, BodyPartReader):
                    continue
                if part.name == FILE_FIELD and artifact is None:
                    check_extension(part.filename)
                    artifact = self._create_artifact(part.filename)
                    async for chunk in self._chunks(part, received):
                        received += len(chunk)
                        artifact.file.write(chunk)
                        artifact.size += len(chunk)
                else:
                    value = bytearray()
                    async for chunk in self._chunks(part, received):
                        received += len(chunk)
                        value.extend(chunk)
                    if part.name:
                        fields[part.name] = self._field_text(part, bytes(value))
            if artifact is None:
                raise UploadRejected(f"missing '{FILE_FIELD}' field in upload")
            artifact.file.flush()
            artifact.file.seek(0)
        except OSError as err:
            if artifact is not None:
                artifact.close()
            raise TransferIOError(f"cannot stage upload: {err}") from err
        except Exception:
            if artifact is not None:
                artifact.close()
            raise
        artifact.fields = fields
        logger.debug(
            "Staged upload %s (%d bytes)", artifact.filename, artifact.size,
        )
        return artifact

    async def _chunks(
        self, part: BodyPartReader, received: int
    ) -> AsyncIterator[bytes]:
        """Yield the part body in chunks, enforcing the body limit."""
        while True:
            chunk = await part.read_chunk(CHUNK_SIZE)
            if not chunk:
                return
            received += len(chunk)
            if received > self.max_size:
                raise PayloadTooLarge(self.max_size)
            yield chunk

    @staticmethod
    def _field_text(part: BodyPartReader, value: bytes) -> str:
        try:
            return value.decode(part.get_charset(default="utf-8"))
        except (UnicodeDecodeError, LookupError) as err:
            raise UploadRejected(f"field {part.name} is not valid text") from err

    def _create_artifact(self, filename: str) -> UploadedArtifact:
        try:
            tmp = tempfile.NamedTemporaryFile(
                mode="w+b",
                prefix=UPLOAD_PREFIX,
                suffix=UPLOAD_EXTENSION,
                dir=self.temp_dir,
                delete=False,
            )
        except OSError as err:
            raise TransferIOError(f"cannot create temp file: {err}") from err
        return UploadedArtifact(file=tmp, path=tmp.name, filename=filename)

    @asynccontextmanager
    async def staged(self, request: web.Request) -> AsyncIterator[UploadedArtifact]:
        """Accept an upload and delete it when the block exits."""
        artifact = await self.accept(request)
        try:
            yield artifact
        finally:
            artifact.close()


def staged_upload(
    request: web.Request,
    max_size: int = MAX_UPLOAD_SIZE,
    temp_dir: Optional[str] = None,
):
    """Shortcut for ``UploadIntake(max_size, temp_dir).staged(request)``."""
    return UploadIntake(max_size, temp_dir).staged(request)

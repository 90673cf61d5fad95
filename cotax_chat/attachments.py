"""Attachment pipeline: validation, staging, and data-URL encoding.

Files arrive from the file picker or a paste, are validated as one batch,
staged by name until the next submission, and are encoded into embedded-data
strings only when that submission runs.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
import logging
import mimetypes
from pathlib import Path

from .data_url import decode_data_url, encode_data_url, text_from_data_url
from .events import ATTACHMENTS_CHANGED, EventBus
from .exceptions import AttachmentValidationError, EncodingError
from .notices import Notifier

LOGGER = logging.getLogger(__name__)

ACCEPTED_TYPE_PREFIXES: tuple[str, ...] = ("image/", "text/")
ACCEPTED_EXACT_TYPES: frozenset[str] = frozenset({"application/pdf"})

# Accept filter handed to the file-picker surface.
PICKER_ACCEPT = "image/*,text/*,application/pdf"

REJECTED_BATCH_MESSAGE = "Only image, text, and PDF files are allowed"


def is_accepted_type(content_type: str) -> bool:
    """Return True for image, text, and PDF MIME types."""
    return (
        content_type.startswith(ACCEPTED_TYPE_PREFIXES)
        or content_type in ACCEPTED_EXACT_TYPES
    )


@dataclass(frozen=True)
class PendingFile:
    """A selected or pasted file awaiting submission.

    Exactly one of ``path`` (picker selections) or ``data`` (clipboard pastes)
    holds the content.
    """

    name: str
    content_type: str
    path: Path | None = None
    data: bytes | None = None

    @classmethod
    def from_path(cls, path: str | Path, content_type: str | None = None) -> PendingFile:
        resolved = Path(path).expanduser()
        if content_type is None:
            guessed, _ = mimetypes.guess_type(resolved.name)
            content_type = guessed or ""
        return cls(name=resolved.name, content_type=content_type, path=resolved)

    @classmethod
    def from_bytes(cls, name: str, data: bytes, content_type: str) -> PendingFile:
        return cls(name=name, content_type=content_type, data=bytes(data))

    async def read(self) -> bytes:
        """Return the full file content."""
        if self.data is not None:
            return self.data
        if self.path is None:
            raise OSError(f"No content source for {self.name!r}")
        return await asyncio.to_thread(self.path.read_bytes)


@dataclass
class Attachment:
    """An encoded attachment as carried by a chat request and a message."""

    url: str
    name: str
    content_type: str
    uploaded: bool = False

    @property
    def kind(self) -> str:
        if self.content_type.startswith("image/"):
            return "image"
        if self.content_type.startswith("text/"):
            return "text"
        if self.content_type == "application/pdf":
            return "pdf"
        return "other"

    def text_preview(self) -> str | None:
        """Body of a text attachment, or None for other kinds.

        Bytes that are not valid UTF-8 decode to U+FFFD so a legacy-encoded
        export still renders and can be resent.
        """
        if self.kind != "text":
            return None
        try:
            return text_from_data_url(self.url)
        except UnicodeDecodeError:
            _, data = decode_data_url(self.url)
            return data.decode("utf-8", errors="replace")

    def to_payload(self) -> dict[str, str]:
        return {"url": self.url, "name": self.name, "contentType": self.content_type}


class AttachmentManager:
    """Owns the staged-file list between selection and submission.

    Responsibilities:
    - All-or-nothing type validation of picker and paste batches
    - Staging keyed by file name, removal, and clearing
    - Resetting the file-picker selection so a removed file can be re-chosen
    - Encoding staged files into data-URL attachments
    """

    def __init__(
        self,
        notifier: Notifier | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.notifier = notifier or Notifier(bus)
        self.bus = bus
        self._pending: list[PendingFile] = []
        self._on_selection_reset: Callable[[], None] | None = None

    @property
    def pending(self) -> tuple[PendingFile, ...]:
        """Staged files in arrival order."""
        return tuple(self._pending)

    def on_selection_reset(self, callback: Callable[[], None]) -> None:
        """Register the file-picker hook that clears its current selection."""
        self._on_selection_reset = callback

    @staticmethod
    def validate(
        candidates: Sequence[PendingFile],
    ) -> tuple[list[PendingFile], bool]:
        """Validate a batch as a whole.

        Returns:
            Tuple of (accepted_files, rejected). A single unsupported file
            rejects the entire batch, so ``accepted_files`` is then empty.
        """
        for candidate in candidates:
            if not is_accepted_type(candidate.content_type):
                return [], True
        return list(candidates), False

    async def add_files(self, candidates: Iterable[PendingFile]) -> bool:
        """Validate and stage a picker or paste batch.

        Returns:
            True when the batch was staged. Empty batches are a no-op.
        """
        batch = list(candidates)
        if not batch:
            return False

        accepted, rejected = self.validate(batch)
        if rejected:
            LOGGER.warning(
                "attachments.batch.rejected",
                extra={
                    "event": "attachments.batch.rejected",
                    "names": [f.name for f in batch],
                    "content_types": [f.content_type for f in batch],
                },
            )
            self.notifier.report(AttachmentValidationError(REJECTED_BATCH_MESSAGE))
            return False

        await self.stage(accepted)
        return True

    async def add_paths(self, paths: Iterable[str | Path]) -> bool:
        """Stage files chosen through the picker by filesystem path."""
        candidates: list[PendingFile] = []
        for raw in paths:
            candidate = PendingFile.from_path(raw)
            if candidate.path is None or not candidate.path.is_file():
                self.notifier.report(AttachmentValidationError(f"File not found: {raw}"))
                return False
            candidates.append(candidate)
        return await self.add_files(candidates)

    async def stage(self, accepted: Iterable[PendingFile]) -> None:
        """Append accepted files; a file whose name is already staged replaces it."""
        for pending in accepted:
            for index, existing in enumerate(self._pending):
                if existing.name == pending.name:
                    self._pending[index] = pending
                    break
            else:
                self._pending.append(pending)
        LOGGER.info(
            "attachments.staged",
            extra={"event": "attachments.staged", "count": len(self._pending)},
        )
        await self._publish_changed()

    async def remove(self, name: str) -> bool:
        """Evict the first staged file called ``name`` and reset the picker."""
        removed = False
        for index, pending in enumerate(self._pending):
            if pending.name == name:
                del self._pending[index]
                removed = True
                break
        self._reset_selection()
        if removed:
            await self._publish_changed()
        return removed

    async def discard(self, submitted: Iterable[PendingFile]) -> None:
        """Drop exactly the ``submitted`` entries and reset the picker.

        Files staged after the snapshot was taken stay staged.
        """
        sent = {id(pending) for pending in submitted}
        self._pending = [p for p in self._pending if id(p) not in sent]
        self._reset_selection()
        await self._publish_changed()

    async def clear(self) -> None:
        """Drop every staged file and reset the picker selection."""
        self._pending.clear()
        self._reset_selection()
        await self._publish_changed()

    async def encode(self, file: PendingFile) -> Attachment:
        """Read a staged file and encode it as a data-URL attachment.

        Raises:
            EncodingError: If the file content cannot be read.
        """
        try:
            data = await file.read()
        except OSError as exc:
            LOGGER.warning(
                "attachments.encode.failed",
                extra={
                    "event": "attachments.encode.failed",
                    "file_name": file.name,
                    "reason": str(exc),
                },
            )
            raise EncodingError(f"Could not read {file.name}: {exc}") from exc
        return Attachment(
            url=encode_data_url(data, file.content_type),
            name=file.name,
            content_type=file.content_type,
        )

    async def transform_batch(self, files: Sequence[PendingFile]) -> list[Attachment]:
        """Encode files in order; the first failure aborts the whole batch."""
        attachments: list[Attachment] = []
        for file in files:
            attachments.append(await self.encode(file))
        return attachments

    def _reset_selection(self) -> None:
        if self._on_selection_reset is not None:
            self._on_selection_reset()

    async def _publish_changed(self) -> None:
        if self.bus is not None:
            await self.bus.publish(
                ATTACHMENTS_CHANGED,
                {"names": [f.name for f in self._pending]},
                source="attachments",
            )

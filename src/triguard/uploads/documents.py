"""Blob uploads for badge photos, identity documents and voice pitches."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

from triguard.core.config import UploadConfig
from triguard.core.exceptions import UploadRejectedError
from triguard.core.protocols import IFileStore

logger = logging.getLogger(__name__)

VOICE_CONTENT_TYPE = "audio/webm"

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "application/pdf": "pdf",
    VOICE_CONTENT_TYPE: "webm",
}

_ALLOWED_FORMATS_LABEL = "JPEG, PNG, WebP, PDF"


def object_key(prefix: str, content_type: str) -> str:
    """``{prefix}/{epoch_ms}-{random}.{ext}``; the extension follows the checked content type."""
    ext = _EXTENSIONS.get(content_type, "bin")
    stamp = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"{prefix.strip('/')}/{stamp}-{secrets.token_hex(6)}.{ext}"


class DocumentUploader:
    """Checks type and size, stores the blob, returns its durable URL."""

    def __init__(self, file_store: IFileStore, config: UploadConfig | None = None) -> None:
        self._store = file_store
        self._config = config or UploadConfig()

    def _too_large(self) -> UploadRejectedError:
        limit_mb = self._config.max_bytes // (1024 * 1024)
        return UploadRejectedError(f"File too large. Maximum size is {limit_mb}MB")

    def check_declared_size(self, content_length: str | int | None) -> None:
        """Reject an upload from its declared length, before the body is read.

        A missing or unparsable length is left to the check on the received
        bytes.
        """
        try:
            declared = int(content_length) if content_length is not None else None
        except ValueError:
            return
        if declared is not None and declared > self._config.max_bytes:
            raise self._too_large()

    def _check(self, data: bytes, content_type: str, allowed: list[str]) -> None:
        if content_type not in allowed:
            raise UploadRejectedError(
                f"Invalid file type {content_type!r}. Please upload: {_ALLOWED_FORMATS_LABEL}"
            )
        if len(data) > self._config.max_bytes:
            raise self._too_large()
        if not data:
            raise UploadRejectedError("File is empty")

    def _store_blob(self, prefix: str, filename: str, data: bytes, content_type: str) -> str:
        key = object_key(prefix, content_type)
        self._store.write(key, data, content_type)
        logger.info("Stored %d bytes from %r at %s", len(data), filename, key)
        return self._store.public_url(key)

    def upload_document(self, prefix: str, filename: str, data: bytes, content_type: str) -> str:
        """Upload an identity document or signed form under ``prefix``.

        Raises:
            UploadRejectedError: content type not allowed, empty file, or over
                the size limit. Nothing is written in that case.
        """
        self._check(data, content_type, self._config.allowed_document_types)
        return self._store_blob(prefix, filename, data, content_type)

    def upload_identity_document(
        self, kind: str, filename: str, data: bytes, content_type: str
    ) -> str:
        # kind: "social-security", "drivers-license" or "direct-deposit"
        return self.upload_document(
            f"{self._config.documents_prefix}/{kind}", filename, data, content_type
        )

    def upload_badge_photo(self, filename: str, data: bytes, content_type: str) -> str:
        images = [t for t in self._config.allowed_document_types if t.startswith("image/")]
        self._check(data, content_type, images)
        return self._store_blob(self._config.badge_photos_prefix, filename, data, content_type)

    def upload_voice_recording(self, data: bytes, content_type: str = VOICE_CONTENT_TYPE) -> str:
        """Store one complete pitch recording captured client-side."""
        base_type = content_type.split(";", 1)[0].strip()
        if base_type != VOICE_CONTENT_TYPE:
            raise UploadRejectedError(f"Voice recordings must be {VOICE_CONTENT_TYPE}")
        if len(data) > self._config.max_bytes:
            raise self._too_large()
        if not data:
            raise UploadRejectedError("Recording is empty")
        return self._store_blob(
            self._config.voice_recordings_prefix, "pitch.webm", data, VOICE_CONTENT_TYPE
        )

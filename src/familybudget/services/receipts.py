"""Receipt image storage on the local filesystem."""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from pathlib import Path

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..logging_config import get_logger

logger = get_logger("services.receipts")

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "pdf"}
_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]+")


class ReceiptError(ValueError):
    """The uploaded receipt was rejected."""


@dataclass
class ReceiptStorage:
    """Store uploads under ``directory`` with a random suffix to avoid collisions."""

    directory: Path

    def store(self, upload: FileStorage) -> str:
        """Save ``upload`` and return its stored name.

        A receipt being replaced is left on disk; callers remove it with
        :meth:`remove` once the new name is committed.
        """
        original = secure_filename(upload.filename or "")
        stem, _, extension = original.rpartition(".")
        if not stem:
            stem, extension = extension, ""
        extension = extension.lower()
        if extension not in ALLOWED_EXTENSIONS:
            raise ReceiptError("Receipt must be an image or PDF file.")

        safe_base = _UNSAFE.sub("-", stem).strip("-") or "receipt"
        filename = f"{safe_base}-{secrets.token_hex(6)}.{extension}"
        self.directory.mkdir(parents=True, exist_ok=True)
        upload.save(self.path(filename))
        logger.info("Receipt stored", extra={"receipt": filename})
        return filename

    def remove(self, filename: str | None) -> None:
        if not filename:
            return
        path = self.path(filename)
        if path.is_file():
            path.unlink()
            logger.info("Receipt removed", extra={"receipt": filename})

    def path(self, filename: str) -> Path:
        # basename only
        return self.directory / Path(filename).name

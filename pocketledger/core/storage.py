import logging
import secrets
import time
import uuid
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from ..config import settings
from ..errors import InvalidInput


logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads"

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/heic": ".heic",
}


class ReceiptStorage:
    """Receipt photos on local disk, one directory per user.

    Stored references look like ``/uploads/<user_id>/<file>`` so they can be
    served as-is from the static mount.
    """

    def __init__(self, root: Path, max_bytes: int = settings.max_upload_bytes):
        self.root = Path(root)
        self.max_bytes = max_bytes

    def _resolve(self, reference: str) -> Optional[Path]:
        if not reference or not reference.startswith(URL_PREFIX + "/"):
            return None
        relative = reference[len(URL_PREFIX) + 1:]
        root = self.root.resolve()
        path = (root / relative).resolve()
        if root not in path.parents:
            return None
        return path

    def save(self, user_id: uuid.UUID, data: bytes, content_type: str) -> str:
        content_type = (content_type or "").lower()
        if not content_type.startswith("image/"):
            raise InvalidInput("Only image files are allowed")
        if len(data) == 0:
            raise InvalidInput("Empty file")
        if len(data) > self.max_bytes:
            raise InvalidInput(f"File too large (max {self.max_bytes // (1024 * 1024)}MB)")

        ext = _EXTENSIONS.get(content_type, "")
        base_dir = self.root / str(user_id)
        base_dir.mkdir(parents=True, exist_ok=True)

        filename = f"receipt-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"
        with open(base_dir / filename, "wb") as f:
            f.write(data)

        return f"{URL_PREFIX}/{user_id}/{filename}"

    def save_upload(self, user_id: uuid.UUID, upload: UploadFile) -> str:
        data = upload.file.read(self.max_bytes + 1)
        return self.save(user_id, data, upload.content_type)

    def exists(self, reference: str) -> bool:
        path = self._resolve(reference)
        return path is not None and path.is_file()

    def delete(self, reference: str) -> bool:
        """Remove a stored receipt. Never raises; returns False if nothing was removed."""
        path = self._resolve(reference)
        if path is None:
            logger.warning("Refusing to delete receipt outside upload root: %s", reference)
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError:
            logger.exception("Failed to remove receipt %s", reference)
            return False
        return True


def get_receipt_storage() -> ReceiptStorage:
    return ReceiptStorage(Path(settings.upload_dir))

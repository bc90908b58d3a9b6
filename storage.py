import logging
import os
import re
import time
from pathlib import Path

from errors import ImageUploadError

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_name(filename: str) -> str:
    base = os.path.basename(filename or "") or "upload"
    return _UNSAFE.sub("_", base)


class LocalStorage:
    """Upload-by-name file storage published under ``base_url``."""

    def __init__(self, root: str, base_url: str = "/assets"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def upload(self, filename: str, data: bytes) -> str:
        stored = f"{int(time.time() * 1000)}-{safe_name(filename)}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / stored).write_bytes(data)
        except OSError as e:
            logger.error("Error uploading image %s: %s", filename, e)
            raise ImageUploadError(filename) from e
        logger.info("Stored image %s", stored)
        return f"{self.base_url}/{stored}"

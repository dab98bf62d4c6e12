import logging
import os
import secrets
import time
from pathlib import Path

from .errors import StorageFailure

LOGGER = logging.getLogger(__name__)

STORAGE_DIR = os.getenv("JJ_STORAGE_DIR", "./storage")
MEDIA_URL_PREFIX = "/media"
DERIVED_DIRNAME = "_derived"
DERIVED_SUFFIX = "_enh.jpg"
SAFE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".heic", ".tif", ".tiff"}


def safe_ext(filename: str | None, default: str = ".jpg") -> str:
    ext = Path(filename or "").suffix.lower()
    return ext if ext in SAFE_EXTENSIONS else default


def write_atomic(path: Path, data: bytes) -> None:
    """Write ``data`` to a sibling temp file and rename it over ``path``."""
    tmp = path.with_name(f".{path.name}.{secrets.token_hex(4)}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_bytes(data)
        os.replace(tmp, path)
    except OSError as exc:
        remove_quietly(tmp)
        raise StorageFailure(f"Failed to write {path.name}") from exc


def read_bytes(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise StorageFailure(f"Failed to read {path.name}") from exc


def remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError:
        LOGGER.warning("Could not remove %s", path)


class MediaStorage:
    """Filesystem layout for uploaded originals and their derived variants.

    Originals live in ``media/<owner>/<entry>/`` and derived images in the
    ``_derived`` folder beneath it. URLs mirror that layout under the
    ``/media`` static mount.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root) / "media"

    def entry_dir(self, owner_id: str, entry_id: str) -> Path:
        return self.root / owner_id / entry_id

    def derived_dir(self, owner_id: str, entry_id: str) -> Path:
        return self.entry_dir(owner_id, entry_id) / DERIVED_DIRNAME

    def new_name(self, filename: str | None) -> tuple[str, str]:
        ext = safe_ext(filename)
        stem = f"{int(time.time() * 1000)}_{secrets.token_urlsafe(6)[:6]}"
        return stem + ext, stem + DERIVED_SUFFIX

    def original_path(self, owner_id: str, entry_id: str, name: str) -> Path:
        return self.entry_dir(owner_id, entry_id) / name

    def derived_path(self, owner_id: str, entry_id: str, name: str) -> Path:
        return self.derived_dir(owner_id, entry_id) / name

    def original_url(self, owner_id: str, entry_id: str, name: str) -> str:
        return f"{MEDIA_URL_PREFIX}/{owner_id}/{entry_id}/{name}"

    def derived_url(self, owner_id: str, entry_id: str, name: str) -> str:
        return f"{MEDIA_URL_PREFIX}/{owner_id}/{entry_id}/{DERIVED_DIRNAME}/{name}"

"""JSON file helpers shared by the file-backed stores."""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from timetrack.errors import CorruptDataError, StorageError

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


def backup_path(path: Path) -> Path:
    return path.with_name(path.name + ".bak")


def load_json_document(path: Path) -> dict[str, Any] | None:
    """Load a JSON object from ``path``.

    Returns None when the file does not exist. Raises ``CorruptDataError`` when
    it exists but cannot be read or parsed into an object.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise CorruptDataError(f"Failed to read {path}: {exc}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CorruptDataError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise CorruptDataError(f"Expected a JSON object in {path}")
    return data


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    """Write ``payload`` to ``path`` without ever leaving a truncated file.

    The document goes to a uniquely named sibling temp file first, so
    concurrent writers never share one. The current file, if any, is copied
    to ``<name>.bak``, then the temp file is renamed into place. When the
    rename fails a copy is attempted instead. The temp file is removed on any
    failure.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(payload, indent=2) + "\n"
    try:
        fd, name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=TEMP_SUFFIX)
    except OSError as exc:
        raise StorageError(f"Failed to create a temp file for {path}: {exc}") from exc
    tmp = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
    except OSError as exc:
        _discard(tmp)
        raise StorageError(f"Failed to write {tmp}: {exc}") from exc

    if path.exists():
        try:
            shutil.copyfile(path, backup_path(path))
        except OSError as exc:
            logger.warning("Failed to back up %s: %s", path, exc)

    try:
        os.replace(tmp, path)
        return
    except OSError as exc:
        logger.warning("Rename into %s failed (%s); falling back to copy", path, exc)

    try:
        shutil.copyfile(tmp, path)
    except OSError as exc:
        logger.error("Failed to finalize write of %s: %s", path, exc)
        raise StorageError(f"Failed to finalize write of {path}: {exc}") from exc
    finally:
        _discard(tmp)


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to remove temporary file %s: %s", path, exc)


def load_model_with_backup[M: BaseModel](path: Path, model: type[M]) -> M | None:
    """Parse ``path`` into ``model``, falling back to its backup when corrupt.

    Returns None when the file is missing, or when it is corrupt and no usable
    backup exists.
    """
    try:
        return _load_model(path, model)
    except CorruptDataError as exc:
        logger.warning("%s; trying backup", exc)

    try:
        recovered = _load_model(backup_path(path), model)
    except CorruptDataError as exc:
        logger.error("No usable backup for %s: %s", path, exc)
        return None
    if recovered is None:
        logger.error("No backup found for corrupt file %s", path)
        return None
    logger.warning("Recovered %s from backup", path)
    return recovered


def _load_model[M: BaseModel](path: Path, model: type[M]) -> M | None:
    data = load_json_document(path)
    if data is None:
        return None
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise CorruptDataError(f"Unexpected document shape in {path}: {exc}") from exc

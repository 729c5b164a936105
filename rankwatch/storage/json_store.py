import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from loguru import logger


class PersistenceError(Exception):
    """Raised when a state file cannot be written or read back."""

    pass


def write_json_atomic(path: Path, payload: Any) -> None:
    """Writes ``payload`` as JSON so readers only ever see a complete file.

    The document goes to a temporary file in the same directory, is flushed
    to disk, and then renamed over ``path``.
    """
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            json.dump(payload, tmp, indent=2, ensure_ascii=False)
            tmp.write("\n")
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except (OSError, TypeError, ValueError) as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        logger.error(f"Failed to write state file {path}: {e}")
        raise PersistenceError(f"Could not write {path}: {e}") from e
    logger.debug(f"Wrote state file {path}")


def read_json(path: Path) -> Optional[Any]:
    """Loads a JSON state file; returns None when it does not exist yet."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read state file {path}: {e}")
        raise PersistenceError(f"Could not read {path}: {e}") from e

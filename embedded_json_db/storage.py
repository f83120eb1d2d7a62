from __future__ import annotations
import copy
import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional

from .errors import NotFoundError, StorageError, TypeMismatchError

logger = logging.getLogger(__name__)


class FileStorage:
    """
    Whole-file JSON I/O: the document is read once and always written back
    in full. Writes go through a temp file and os.replace.
    """
    def __init__(
        self,
        path: str,
        create_if_not_exists: bool = True,
        default_value: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.path = os.fspath(path)
        self.create_if_not_exists = create_if_not_exists
        self.default_value = default_value

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def read(self) -> Dict[str, Any]:
        if not self.exists():
            if not self.create_if_not_exists:
                raise NotFoundError(f"database file does not exist: {self.path}")
            doc = copy.deepcopy(self.default_value) if self.default_value is not None else {}
            logger.info("creating database file %s", self.path)
            self.write(doc)
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(f"invalid JSON in {self.path}: {e}") from e
        except OSError as e:
            raise StorageError(f"cannot read {self.path}: {e}") from e
        if not isinstance(doc, dict):
            raise TypeMismatchError(
                f"top-level JSON value in {self.path} must be an object, got {type(doc).__name__}"
            )
        return doc

    def write(self, doc: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=os.path.basename(self.path) + ".", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(doc, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            self.replace_file(tmp_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug("wrote %s", self.path)

    def replace_file(self, tmp_path: str) -> None:
        os.replace(tmp_path, self.path)

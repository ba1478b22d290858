"""
In-memory JSON document with atomic persistence.

Dictionary files and report files are both flat or nested JSON objects. This
module gives them a small has/get/set/delete/merge API and a save routine that
writes to a temp file next to the destination and renames it into place, so a
failed write never truncates the existing file.
"""
import json
import logging
import os
import tempfile
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger("diagram_localizer.json_document")


class JsonDocumentError(ValueError):
    """The file does not contain a JSON object."""


class AtomicWriteError(OSError):
    """Writing or renaming the temp file failed. The temp file is kept."""

    def __init__(self, message: str, temp_path: Optional[str] = None):
        super().__init__(message)
        self.temp_path = temp_path


def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    for key, value in source.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _deep_merge(current, value)
        else:
            target[key] = value


def write_json_atomic(path: str, data: Any, sort_keys: bool = False) -> None:
    """
    Serialize `data` to `path` through a temp file and `os.replace`.

    Args:
        path: Destination file. Its directory is created if needed.
        data: JSON-serializable object.
        sort_keys: Sort object keys in the output.

    Raises:
        AtomicWriteError: If the temp file cannot be created, written or renamed.
    """
    directory = os.path.dirname(os.path.abspath(path))
    try:
        os.makedirs(directory, exist_ok=True)
        temp_f = tempfile.NamedTemporaryFile(
            mode='w',
            delete=False,
            dir=directory,
            prefix=f".{os.path.basename(path)}.",
            suffix='.tmp',
            encoding='utf-8'
        )
    except OSError as e:
        raise AtomicWriteError(f"Could not create a temp file next to '{path}': {e}") from e

    temp_path = temp_f.name
    try:
        with temp_f:
            json.dump(data, temp_f, indent=2, ensure_ascii=False, sort_keys=sort_keys)
            temp_f.write('\n')
            temp_f.flush()
            os.fsync(temp_f.fileno())
        os.replace(temp_path, path)
    except (OSError, TypeError, ValueError) as e:
        logger.error("Failed to write '%s'; partial output kept at '%s'", path, temp_path)
        raise AtomicWriteError(f"Could not write '{path}': {e}", temp_path=temp_path) from e


class JsonDocument:
    """A JSON object loaded into memory."""

    def __init__(self, data: Optional[Dict[str, Any]] = None, path: Optional[str] = None):
        self.data: Dict[str, Any] = data if data is not None else {}
        self.path = path

    @classmethod
    def load(cls, path: str) -> "JsonDocument":
        """
        Parse a JSON file whose top level is an object.

        Raises:
            OSError: If the file cannot be read.
            json.JSONDecodeError: If the content is not valid JSON.
            JsonDocumentError: If the top level is not an object.
        """
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise JsonDocumentError(f"'{path}' does not contain a JSON object (found {type(data).__name__})")
        return cls(data, path)

    def has(self, key: str) -> bool:
        return key in self.data

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def delete(self, key: str) -> bool:
        """Remove `key`. Returns False when it was not present."""
        if key not in self.data:
            return False
        del self.data[key]
        return True

    def keys(self) -> List[str]:
        return list(self.data.keys())

    def merge(self, other: Dict[str, Any]) -> None:
        """Recursively merge `other` into this document."""
        _deep_merge(self.data, other)

    def save(self, path: Optional[str] = None, sort_keys: bool = False) -> None:
        target = path or self.path
        if not target:
            raise ValueError("No path given for saving the JSON document.")
        write_json_atomic(target, self.data, sort_keys=sort_keys)
        self.path = target

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)

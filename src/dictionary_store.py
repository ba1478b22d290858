"""
Per-language translation dictionaries.

A language is a directory under the translations root holding one or more
flat JSON files (`{"KEY": "value", ...}`). The store reads them into plain
mappings, locates the files defining a key and removes keys from a file.
"""
import json
import logging
import os
from typing import Any, Dict, Iterable, List, Optional, Tuple

import jsonschema

from src.errors import DuplicateKeyError, SetupError
from src.json_document import JsonDocument

logger = logging.getLogger("diagram_localizer.dictionary_store")

# A dictionary file is a flat object of scalar values.
DICTIONARY_SCHEMA = {
    "type": "object",
    "patternProperties": {
        "^.*$": {"type": ["string", "number", "boolean", "null"]}
    },
    "additionalProperties": False
}

# file name -> key -> value, in file-name order
FileSnapshots = Dict[str, Dict[str, str]]


def normalize_value(value: Any) -> str:
    """Turn a JSON scalar into the string used for substitution."""
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    # json.dumps keeps JSON spelling for booleans and numbers (true, 1.5)
    return json.dumps(value)


class DictionaryStore:
    """Reads and edits the JSON dictionaries under `translations_dir`."""

    def __init__(self, translations_dir: str, strict_duplicates: bool = False):
        self.translations_dir = translations_dir
        self.strict_duplicates = strict_duplicates

    def language_dir(self, language: str) -> str:
        return os.path.join(self.translations_dir, language)

    def list_languages(self) -> List[str]:
        """
        List the languages available under the translations root.

        Raises:
            SetupError: If the root does not exist or has no language directories.
        """
        if not os.path.isdir(self.translations_dir):
            raise SetupError(f"Translations directory '{self.translations_dir}' does not exist.")
        languages = sorted(
            entry for entry in os.listdir(self.translations_dir)
            if os.path.isdir(os.path.join(self.translations_dir, entry))
        )
        if not languages:
            raise SetupError(f"No language directory found in '{self.translations_dir}'.")
        return languages

    def dictionary_files(self, language: str) -> List[str]:
        """Return the JSON files of a language sorted by file name."""
        directory = self.language_dir(language)
        if not os.path.isdir(directory):
            return []
        return [
            os.path.join(directory, name)
            for name in sorted(os.listdir(directory))
            if name.endswith('.json') and os.path.isfile(os.path.join(directory, name))
        ]

    def read_file(self, file_path: str) -> Dict[str, str]:
        """
        Read one dictionary file.

        Raises:
            OSError, ValueError (invalid JSON, bad encoding, not an object),
            jsonschema.ValidationError: If the file is unusable.
        """
        document = JsonDocument.load(file_path)
        jsonschema.validate(instance=document.data, schema=DICTIONARY_SCHEMA)
        return {key: normalize_value(value) for key, value in document.data.items()}

    def load_files(self, language: str) -> FileSnapshots:
        """
        Load every dictionary file of a language separately.

        Files that cannot be parsed are logged and skipped. A missing language
        directory yields an empty result with a warning.
        """
        directory = self.language_dir(language)
        if not os.path.isdir(directory):
            logger.warning("Translation directory not found: %s", directory)
            return {}

        snapshots: FileSnapshots = {}
        for file_path in self.dictionary_files(language):
            file_name = os.path.basename(file_path)
            try:
                snapshots[file_name] = self.read_file(file_path)
            except (OSError, ValueError) as e:
                logger.error("Skipping unreadable dictionary file '%s': %s", file_path, e)
            except jsonschema.ValidationError as e:
                logger.error("Skipping dictionary file '%s': not a flat key/value object (%s)", file_path, e.message)
        return snapshots

    def load(self, language: str) -> Dict[str, str]:
        """
        Merge all dictionary files of a language into one mapping.

        Files are merged in file-name order, so when a key is defined in more
        than one file the last file wins. That choice is logged; with
        `strict_duplicates` it raises instead.

        Raises:
            DuplicateKeyError: In strict mode, for the first duplicated key.
        """
        snapshots = self.load_files(language)
        return self.merge_snapshots(language, snapshots)

    def merge_snapshots(self, language: str, snapshots: FileSnapshots, strict: Optional[bool] = None) -> Dict[str, str]:
        """Merge per-file snapshots. `strict` overrides `strict_duplicates` when given."""
        if strict is None:
            strict = self.strict_duplicates
        merged: Dict[str, str] = {}
        origin: Dict[str, List[str]] = {}
        for file_name, entries in snapshots.items():
            for key, value in entries.items():
                merged[key] = value
                origin.setdefault(key, []).append(file_name)

        for key, files in origin.items():
            if len(files) < 2:
                continue
            if strict:
                raise DuplicateKeyError(language, key, files)
            logger.warning(
                "Key '%s' is defined in %s for '%s'; using the value from '%s'.",
                key, ', '.join(files), language, files[-1]
            )

        logger.info("%d keys loaded for '%s' from %d file(s)", len(merged), language, len(snapshots))
        return merged

    def locate_files(self, language: str, key: str) -> List[Tuple[str, str]]:
        """Return `(file name, value)` for every file of `language` defining `key`."""
        return [
            (file_name, entries[key])
            for file_name, entries in self.load_files(language).items()
            if key in entries
        ]

    def remove_keys(self, file_path: str, keys: Iterable[str]) -> List[str]:
        """
        Delete `keys` from one dictionary file with a single atomic rewrite.

        Keys absent from the file are ignored. The file is only rewritten when
        something was removed.

        Returns:
            The keys that were actually removed, in the order given.

        Raises:
            AtomicWriteError: If the rewritten file cannot be saved.
        """
        if not os.path.isfile(file_path):
            return []
        document = JsonDocument.load(file_path)
        removed = [key for key in keys if document.delete(key)]
        if removed:
            document.save()
        return removed

    def remove_key(self, file_path: str, key: str) -> bool:
        """Delete one key from a dictionary file. Absent keys are a no-op."""
        return bool(self.remove_keys(file_path, [key]))

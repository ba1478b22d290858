"""
Comparison of the scanned placeholders against a language dictionary.

Everything here is pure: the functions work on the mappings and snapshots
passed in and never touch the filesystem.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Set, Tuple

from src.dictionary_store import FileSnapshots


@dataclass
class AuditRecord:
    """One report entry for a key of a language."""
    language: str
    key: str
    value: str = ""
    all_values: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)

    def to_report_entry(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"value": self.value, "files": list(self.files)}
        if len(self.all_values) > 1:
            entry["all_values"] = list(self.all_values)
        return entry


@dataclass
class DuplicateEntry:
    values: List[str]
    files: List[str]


@dataclass
class ValidationResult:
    """Outcome of validating one language."""
    language: str
    missing: List[str]
    unused: List[str]
    duplicates: Dict[str, DuplicateEntry]
    placeholder_count: int
    key_count: int

    @property
    def has_issues(self) -> bool:
        return bool(self.missing or self.unused or self.duplicates)


def find_missing(placeholders: Set[str], dictionary: Dict[str, str]) -> Set[str]:
    """
    Placeholders with no dictionary entry, or an entry whose value is empty.

    Args:
        placeholders: Tokens referenced by the source files.
        dictionary: The merged dictionary of one language.

    Returns:
        The set of missing placeholder tokens.
    """
    return {placeholder for placeholder in placeholders if not dictionary.get(placeholder)}


def find_unused(dictionary: Dict[str, str], placeholders: Set[str]) -> Set[str]:
    """Dictionary keys that no source file references."""
    return set(dictionary) - set(placeholders)


def locate_key(snapshots: FileSnapshots, key: str) -> List[Tuple[str, str]]:
    """Return `(file name, value)` for every snapshot defining `key`."""
    return [(file_name, entries[key]) for file_name, entries in snapshots.items() if key in entries]


def _distinct_values(values: Iterable[str]) -> List[str]:
    distinct: List[str] = []
    for value in values:
        if value and value not in distinct:
            distinct.append(value)
    return distinct


def find_duplicates(snapshots: FileSnapshots) -> Dict[str, DuplicateEntry]:
    """
    Keys defined in more than one dictionary file of a language.

    A key present in a single file is never a duplicate, whatever its value.

    Returns:
        key -> DuplicateEntry with the distinct non-empty values (in file order)
        and the contributing file names.
    """
    files_by_key: Dict[str, List[str]] = {}
    for file_name, entries in snapshots.items():
        for key in entries:
            files_by_key.setdefault(key, []).append(file_name)

    duplicates: Dict[str, DuplicateEntry] = {}
    for key in sorted(files_by_key):
        files = files_by_key[key]
        if len(files) < 2:
            continue
        values = _distinct_values(snapshots[file_name][key] for file_name in files)
        duplicates[key] = DuplicateEntry(values=values, files=files)
    return duplicates


def prepare_key_records(language: str, snapshots: FileSnapshots, keys: Iterable[str]) -> List[AuditRecord]:
    """
    Build audit records holding the value(s) and file(s) of each key.

    Keys not defined anywhere produce a record with an empty value and no files.
    """
    records = []
    for key in sorted(set(keys)):
        locations = locate_key(snapshots, key)
        values = _distinct_values(value for _, value in locations)
        records.append(AuditRecord(
            language=language,
            key=key,
            value=values[0] if values else "",
            all_values=values,
            files=[file_name for file_name, _ in locations],
        ))
    return records


def missing_records(language: str, missing: Iterable[str]) -> List[AuditRecord]:
    return [AuditRecord(language=language, key=key) for key in sorted(missing)]


def duplicate_records(language: str, duplicates: Dict[str, DuplicateEntry]) -> List[AuditRecord]:
    return [
        AuditRecord(
            language=language,
            key=key,
            value=entry.values[0] if entry.values else "",
            all_values=list(entry.values),
            files=list(entry.files),
        )
        for key, entry in duplicates.items()
    ]


def validate_language(
        language: str,
        placeholders: Set[str],
        dictionary: Dict[str, str],
        snapshots: FileSnapshots
) -> ValidationResult:
    """Run the missing, unused and duplicate checks for one language."""
    return ValidationResult(
        language=language,
        missing=sorted(find_missing(placeholders, dictionary)),
        unused=sorted(find_unused(dictionary, placeholders)),
        duplicates=find_duplicates(snapshots),
        placeholder_count=len(placeholders),
        key_count=len(dictionary),
    )

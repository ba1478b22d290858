"""
JSON reports of missing, duplicate and deleted keys.

Each report is shaped `{language: {key: {value, files, all_values?}}}`. New
records are merged into the existing file, leaving unrelated languages and
keys untouched, and the result is written atomically.
"""
import json
import logging
import os
import shutil
from typing import Any, Dict, Iterable

from src.errors import ReportParseError, ReportWriteError, SetupError
from src.json_document import AtomicWriteError, JsonDocument, JsonDocumentError
from src.key_auditor import AuditRecord

logger = logging.getLogger("diagram_localizer.report_writer")


def _load_report(report_file: str) -> JsonDocument:
    """
    Load an existing report, resetting it when it is not a JSON object.

    A file that is not valid JSON, or not an object, is copied to
    `<report_file>.bak` and replaced by an empty document.

    Raises:
        ReportParseError: If the file cannot be read or backed up.
    """
    if not os.path.exists(report_file):
        return JsonDocument(path=report_file)

    try:
        return JsonDocument.load(report_file)
    except (json.JSONDecodeError, UnicodeDecodeError, JsonDocumentError) as e:
        backup_path = f"{report_file}.bak"
        try:
            shutil.copy2(report_file, backup_path)
        except OSError as copy_exc:
            raise ReportParseError(
                f"Report '{report_file}' is not a JSON object and could not be backed up: {copy_exc}"
            ) from copy_exc
        logger.warning(
            "Existing report '%s' is not a JSON object (%s); resetting to {}. Previous content saved to '%s'.",
            report_file, e, backup_path
        )
        return JsonDocument(path=report_file)
    except OSError as e:
        raise ReportParseError(f"Could not read report '{report_file}': {e}") from e


def append_records(report_file: str, records: Iterable[AuditRecord]) -> int:
    """
    Merge audit records into a report file.

    Args:
        report_file: Path of the JSON report.
        records: Records to store under `report[language][key]`.

    Returns:
        The number of records written.

    Raises:
        ReportParseError: If an existing report cannot be read or reset.
        ReportWriteError: If the report cannot be written. The temp file is
            left on disk and its path is available on the exception.
    """
    records = list(records)
    if not records:
        return 0

    document = _load_report(report_file)
    update: Dict[str, Dict[str, Any]] = {}
    for record in records:
        update.setdefault(record.language, {})[record.key] = record.to_report_entry()

    for language, entries in update.items():
        existing = document.get(language)
        if not isinstance(existing, dict):
            existing = {}
            document.set(language, existing)
        # Entries are replaced whole so a stale all_values never survives.
        existing.update(entries)

    try:
        document.save(report_file, sort_keys=True)
    except AtomicWriteError as e:
        raise ReportWriteError(str(e), temp_path=e.temp_path) from e

    logger.info("%d key(s) saved to %s", len(records), report_file)
    return len(records)


class ReportWriter:
    """The three reports written by validation and cleaning runs."""

    def __init__(self, missing_keys_file: str, duplicate_keys_file: str, deleted_keys_file: str):
        self.missing_keys_file = missing_keys_file
        self.duplicate_keys_file = duplicate_keys_file
        self.deleted_keys_file = deleted_keys_file

    def clear_validation_reports(self) -> None:
        """
        Delete the missing and duplicate reports before a validation run.

        Raises:
            SetupError: If a previous report cannot be removed.
        """
        for report_file in (self.missing_keys_file, self.duplicate_keys_file):
            if not os.path.exists(report_file):
                continue
            try:
                os.remove(report_file)
            except OSError as e:
                raise SetupError(f"Could not remove previous report '{report_file}': {e}") from e
            logger.debug("Removed previous report '%s'", report_file)

    def save_missing(self, records: Iterable[AuditRecord]) -> int:
        return append_records(self.missing_keys_file, records)

    def save_duplicates(self, records: Iterable[AuditRecord]) -> int:
        return append_records(self.duplicate_keys_file, records)

    def save_deleted(self, records: Iterable[AuditRecord]) -> int:
        return append_records(self.deleted_keys_file, records)

import logging
import os
from typing import Dict, Iterable, List

from src.dictionary_store import DictionaryStore
from src.key_auditor import prepare_key_records
from src.report_writer import append_records

logger = logging.getLogger("diagram_localizer.cleaner")


def clean_unused(
        store: DictionaryStore,
        language: str,
        unused_keys: Iterable[str],
        deleted_keys_file: str
) -> int:
    """
    Remove unused keys from the dictionary files of a language.

    The caller decides which keys are unused, from a placeholder set scanned
    before any dictionary was modified. The value(s) and file(s) of each key
    are captured first, the keys are removed from every file defining them,
    and a record per removed key is appended to the deleted-keys report.
    Keys that are already gone are skipped, so running twice is harmless.

    Args:
        store: The dictionary store.
        language: Language code.
        unused_keys: Keys to delete.
        deleted_keys_file: Path of the deleted-keys report.

    Returns:
        The number of distinct keys actually removed.
    """
    unused_keys = sorted(set(unused_keys))
    if not unused_keys:
        return 0

    logger.info("Cleaning %d unused key(s) for '%s'...", len(unused_keys), language)
    snapshots = store.load_files(language)
    records = prepare_key_records(language, snapshots, unused_keys)

    keys_by_file: Dict[str, List[str]] = {}
    for record in records:
        for file_name in record.files:
            keys_by_file.setdefault(file_name, []).append(record.key)

    removed_keys = set()
    try:
        for file_name, keys in keys_by_file.items():
            file_path = os.path.join(store.language_dir(language), file_name)
            for key in store.remove_keys(file_path, keys):
                logger.info("Removed: %s (from %s)", key, file_name)
                removed_keys.add(key)
    finally:
        # Keys already gone from a file are recorded even if a later file fails.
        deleted = [record for record in records if record.key in removed_keys]
        append_records(deleted_keys_file, deleted)

    logger.info("%d key(s) removed for '%s'", len(removed_keys), language)
    return len(removed_keys)

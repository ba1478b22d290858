import logging
import os
import re
import time
from typing import Iterable, List, Set

from tqdm import tqdm

from src.errors import SetupError, SourceNotFoundError

logger = logging.getLogger("diagram_localizer.placeholder_scanner")

# {{TOKEN}} where TOKEN is upper-case letters, digits and underscores
PLACEHOLDER_PATTERN = re.compile(r'\{\{([A-Z_][A-Z0-9_]*)\}\}')


def extract_placeholders(text: str) -> Set[str]:
    """Return the distinct placeholder tokens referenced in `text`, without braces."""
    return set(PLACEHOLDER_PATTERN.findall(text))


def scan(files: Iterable[str], show_progress: bool = False) -> Set[str]:
    """
    Collect the placeholders referenced across a set of source files.

    Args:
        files: Paths of the source diagrams.
        show_progress: Display a tqdm progress bar.

    Returns:
        The union of the placeholder tokens found in every file.

    Raises:
        SetupError: If a file cannot be read as UTF-8 text.
    """
    files = list(files)
    placeholders: Set[str] = set()
    start = time.monotonic()

    logger.info("Scanning placeholders in %d file(s)...", len(files))
    for file_path in tqdm(files, desc="Scanning", unit="file", disable=not show_progress):
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                placeholders |= extract_placeholders(f.read())
        except (OSError, UnicodeDecodeError) as e:
            # A partial scan would make referenced keys look unused.
            raise SetupError(f"Could not scan '{file_path}': {e}") from e

    logger.info("%d unique placeholders found in %.1f seconds", len(placeholders), time.monotonic() - start)
    return placeholders


def _with_extension(target: str, extension: str) -> str:
    if not target.endswith(extension):
        return f"{target}{extension}"
    return target


def is_within(path: str, root: str) -> bool:
    """True if `path` is `root` or lies below it."""
    root = os.path.realpath(root)
    return os.path.commonpath([os.path.realpath(path), root]) == root


def find_source_files(source_dir: str, extension: str = '.mmd') -> List[str]:
    """Recursively list the source diagrams under `source_dir`, sorted."""
    found = []
    for root, dirs, files in os.walk(source_dir):
        dirs.sort()
        for name in sorted(files):
            if name.endswith(extension):
                found.append(os.path.join(root, name))
    return found


def resolve_source_file(source_dir: str, target: str, extension: str = '.mmd') -> str:
    """
    Find a requested diagram under `source_dir`.

    The extension is appended when missing. An existing path relative to
    `source_dir` (or the working directory) wins; otherwise the first file with
    the same base name is used. Paths outside `source_dir` are never returned.

    Raises:
        SourceNotFoundError: If no matching file exists under `source_dir`.
    """
    target = _with_extension(target, extension)

    for candidate in (os.path.join(source_dir, target), target):
        if os.path.isfile(candidate) and is_within(candidate, source_dir):
            return candidate

    wanted = os.path.basename(target)
    for file_path in find_source_files(source_dir, extension):
        if os.path.basename(file_path) == wanted:
            return file_path

    raise SourceNotFoundError(f"File not found: {target}")

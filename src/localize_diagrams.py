"""
Localize Mermaid diagrams and render them to images.

Placeholders such as `{{TITLE}}` in the source diagrams are replaced with the
values of a per-language JSON dictionary, and the result is rendered with the
Mermaid CLI. The dictionaries can be audited for missing, unused and
duplicated keys, and unused keys can be removed.

Usage:
    localize-diagrams -l fr diagram1 diagram2   # render two diagrams in French
    localize-diagrams -l all                     # render everything in every language
    localize-diagrams -l en -v                   # validate the English dictionary
    localize-diagrams -l en -v -c -x             # validate, clean, then render
"""
import argparse
import logging
import os
import sys
from typing import List, Optional, Sequence, Set

from tqdm import tqdm

from src.app_config import AppConfig, load_app_config
from src.cleaner import clean_unused
from src.dictionary_store import DictionaryStore
from src.errors import (
    DuplicateKeyError,
    ReportParseError,
    ReportWriteError,
    SetupError,
    SourceNotFoundError,
)
from src.json_document import AtomicWriteError
from src.key_auditor import (
    ValidationResult,
    duplicate_records,
    find_unused,
    missing_records,
    validate_language,
)
from src.placeholder_scanner import find_source_files, resolve_source_file, scan
from src.render_driver import BatchSummary, MermaidRenderer, render_batch
from src.report_writer import ReportWriter

logger = logging.getLogger("diagram_localizer")

ALL = "all"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="localize-diagrams",
        description="Substitute {{KEY}} placeholders in Mermaid diagrams with localized strings and render them.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  localize-diagrams -l fr file1.mmd     # render one file in French\n"
            "  localize-diagrams -l en -a            # render all files in English\n"
            "  localize-diagrams -l all              # render all files in all languages\n"
            "  localize-diagrams -l fr -v            # validate placeholders for French\n"
            "  localize-diagrams -l en -v -c         # validate and clean English dictionaries\n"
            "  localize-diagrams -l all -v -c -x     # validate, clean, then render everything\n"
        )
    )
    parser.add_argument('files', nargs='*',
                        help="Diagrams to process, with or without extension. Defaults to all files.")
    parser.add_argument('-l', '--language', metavar='CODE',
                        help="Language code to process, or 'all' for every language directory.")
    parser.add_argument('-a', '--all-files', action='store_true',
                        help="Process every diagram under the source directory.")
    parser.add_argument('-v', '--validate', action='store_true',
                        help="Report missing, unused and duplicate keys without rendering.")
    parser.add_argument('-c', '--clean', action='store_true',
                        help="Remove unused keys from the dictionary files.")
    parser.add_argument('-x', '--execute', action='store_true',
                        help="Render after --validate and/or --clean.")
    parser.add_argument('--config', metavar='PATH',
                        help="YAML configuration file (default: ./config.yaml).")
    parser.add_argument('--no-progress', action='store_true',
                        help="Disable progress bars.")
    return parser


def resolve_languages(store: DictionaryStore, target: str) -> List[str]:
    """
    Expand the language option into a list of language codes.

    Raises:
        SetupError: If the translations root holds no language directory.
    """
    available = store.list_languages()
    if target == ALL:
        logger.info("Detected languages: %s", ', '.join(available))
        return available
    if target not in available:
        logger.warning("Language '%s' has no directory under '%s'.", target, store.translations_dir)
    return [target]


def collect_files(config: AppConfig, targets: Sequence[str], all_files: bool) -> List[str]:
    """
    Resolve the diagrams to process.

    Unknown targets are logged and skipped.

    Raises:
        SetupError: If the source directory is missing or nothing is left to process.
    """
    if not os.path.isdir(config.source_dir):
        raise SetupError(f"Source directory '{config.source_dir}' does not exist.")

    if all_files or not targets:
        files = find_source_files(config.source_dir, config.source_extension)
    else:
        files = []
        for target in targets:
            try:
                resolved = resolve_source_file(config.source_dir, target, config.source_extension)
            except SourceNotFoundError as e:
                logger.error("%s", e)
                continue
            if resolved not in files:
                files.append(resolved)

    if not files:
        raise SetupError("No files to process.")
    logger.info("%d diagram file(s) to process", len(files))
    return files


def print_validation_results(result: ValidationResult, auto_clean: bool) -> None:
    """Print the outcome of validating one language to stdout."""
    lines = ["", f"📊 Validation results: {result.language}"]

    if result.missing:
        lines += ["", f"❌ MISSING keys in JSON ({len(result.missing)}):"]
        lines += [f"   - {key}" for key in result.missing]

    if result.unused:
        lines += ["", f"⚠️  UNUSED keys in JSON ({len(result.unused)}):"]
        lines += [f"   - {key}" for key in result.unused]

    if result.duplicates:
        lines += ["", f"⚠️  DUPLICATE keys between files ({len(result.duplicates)}):"]
        for key, entry in result.duplicates.items():
            lines.append(f"   - {key} ({', '.join(entry.files)} | values: {', '.join(entry.values)})")

    if not result.has_issues:
        lines += [
            "",
            "✅ No issues detected!",
            f"   - {result.placeholder_count} placeholders used",
            f"   - {result.key_count} keys available",
        ]

    if result.unused and not auto_clean:
        lines += ["", "💡 Tip: use -c/--clean to remove unused keys automatically"]

    tqdm.write("\n".join(lines))


def _clean_language(
        store: DictionaryStore,
        reports: ReportWriter,
        language: str,
        unused: Set[str]
) -> bool:
    """Clean one language. Returns False if a file or report could not be saved."""
    if not unused:
        tqdm.write(f"✅ No unused keys found for {language}")
        return True
    try:
        removed = clean_unused(store, language, unused, reports.deleted_keys_file)
    except (AtomicWriteError, ReportWriteError, ReportParseError) as e:
        logger.error("Cleaning '%s' failed: %s", language, e)
        return False
    tqdm.write(f"🧹 {removed} key(s) removed for {language}")
    return True


def run_validation(
        store: DictionaryStore,
        reports: ReportWriter,
        languages: List[str],
        placeholders: Set[str],
        auto_clean: bool
) -> bool:
    """
    Validate each language against the scanned placeholders.

    Returns:
        True if every report (and clean) was saved.
    """
    ok = True
    for index, language in enumerate(languages, 1):
        logger.info("Validating language %d/%d: %s", index, len(languages), language)
        snapshots = store.load_files(language)
        # Duplicates are reported here rather than raised, even in strict mode.
        dictionary = store.merge_snapshots(language, snapshots, strict=False)
        result = validate_language(language, placeholders, dictionary, snapshots)
        print_validation_results(result, auto_clean)

        try:
            reports.save_missing(missing_records(language, result.missing))
            reports.save_duplicates(duplicate_records(language, result.duplicates))
        except (ReportWriteError, ReportParseError) as e:
            logger.error("Could not save validation report for '%s': %s", language, e)
            ok = False

        if auto_clean:
            ok = _clean_language(store, reports, language, set(result.unused)) and ok
    return ok


def run_clean(
        store: DictionaryStore,
        reports: ReportWriter,
        languages: List[str],
        placeholders: Set[str]
) -> bool:
    """Remove keys not referenced by `placeholders` from each language."""
    ok = True
    for index, language in enumerate(languages, 1):
        logger.info("Cleaning language %d/%d: %s", index, len(languages), language)
        snapshots = store.load_files(language)
        dictionary = store.merge_snapshots(language, snapshots, strict=False)
        ok = _clean_language(store, reports, language, find_unused(dictionary, placeholders)) and ok
    return ok


def run_render(
        config: AppConfig,
        store: DictionaryStore,
        languages: List[str],
        files: List[str]
) -> List[BatchSummary]:
    """
    Localize and render the files for each language.

    Raises:
        SetupError: If the Mermaid CLI is not available.
        DuplicateKeyError: In strict mode, when a dictionary defines a key twice.
    """
    renderer = MermaidRenderer(
        executable=config.renderer_path,
        config_file=config.renderer_config_file,
        puppeteer_config_file=config.puppeteer_config_file,
        theme=config.renderer_theme,
        background=config.renderer_background,
        timeout=config.renderer_timeout,
    )
    renderer.ensure_available()

    summaries = []
    for index, language in enumerate(languages, 1):
        logger.info("Language %d/%d: %s", index, len(languages), language)
        dictionary = store.load(language)
        if not dictionary:
            logger.warning("No translations loaded for '%s'", language)

        with tqdm(total=len(files), desc=f"Rendering {language}", unit="file",
                  disable=not config.show_progress) as progress:
            summary = render_batch(
                renderer, language, files, dictionary,
                config.source_dir, config.dest_dir, config.output_format,
                progress=progress
            )
        summaries.append(summary)

        failures = len(summary.failures)
        if failures:
            tqdm.write(
                f"✓ Done with {failures} warning(s) out of {summary.total} files "
                f"in {summary.elapsed_seconds:.0f} seconds."
            )
            for result in summary.failures:
                tqdm.write(f"   ❌ {result.source}: {result.detail}")
        else:
            tqdm.write(f"✓ All {summary.total} files processed successfully in {summary.elapsed_seconds:.0f} seconds.")
    return summaries


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Entry point of the command line.

    Returns:
        0 when the requested steps completed, 1 on a setup error or a failed save.
    """
    parser = build_arg_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        parser.print_help()
        return 0
    args = parser.parse_args(argv)
    if not args.language:
        parser.error("a language is required: use -l CODE or -l all")

    try:
        config = load_app_config(args.config)
    except SetupError as e:
        logger.error("%s", e)
        return 1
    if args.no_progress:
        config.show_progress = False

    store = DictionaryStore(config.translations_dir, strict_duplicates=config.strict_duplicates)
    reports = ReportWriter(config.missing_keys_file, config.duplicate_keys_file, config.deleted_keys_file)

    ok = True
    try:
        files = collect_files(config, args.files, args.all_files)
        languages = resolve_languages(store, args.language)

        if args.validate or args.clean:
            if args.validate:
                logger.info("Mode: validation")
                reports.clear_validation_reports()
            else:
                logger.info("Mode: clean")

            # Scanned once, before any dictionary is modified.
            placeholders = scan(files, show_progress=config.show_progress)

            if args.validate:
                ok = run_validation(store, reports, languages, placeholders, args.clean)
                logger.info("Validation completed.")
            else:
                ok = run_clean(store, reports, languages, placeholders)
                logger.info("Cleaning completed.")

            if not args.execute:
                return 0 if ok else 1
            logger.info("Auto-executing conversion...")

        run_render(config, store, languages, files)
        logger.info("All languages processed.")
    except SetupError as e:
        logger.error("%s", e)
        return 1
    except DuplicateKeyError as e:
        logger.error("%s. Run with -v to list duplicates, or set strict_duplicates: false.", e)
        return 1

    return 0 if ok else 1


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()

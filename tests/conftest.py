import json
import logging
import os

import pytest


@pytest.fixture(autouse=True)
def reset_package_logger():
    """setup_logger() disables propagation; restore the default after each test."""
    yield
    logger = logging.getLogger("diagram_localizer")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def project_layout(tmp_path):
    """
    A small project: two diagrams, an English dictionary split over two files
    (one holding an unused key) and a complete French dictionary.
    """
    source_dir = tmp_path / "Documents" / "Edition-files"
    translations_dir = tmp_path / "Translations" / "Mermaid"
    dest_dir = tmp_path / "Documents" / "Graph"

    (source_dir / "flows").mkdir(parents=True)
    (source_dir / "overview.mmd").write_text(
        "graph TD\n  A[{{TITLE}}] --> B[{{DESC}}]\n", encoding="utf-8")
    (source_dir / "flows" / "login.mmd").write_text(
        "sequenceDiagram\n  Alice->>Bob: {{GREETING}}\n", encoding="utf-8")
    (source_dir / "notes.txt").write_text("{{IGNORED}}", encoding="utf-8")

    dictionaries = {
        "en/main.json": {"TITLE": "Hello", "GREETING": "Hi"},
        "en/extra.json": {"OLD_KEY": "foo"},
        "fr/main.json": {"TITLE": "Bonjour", "DESC": "Description", "GREETING": "Salut"},
    }
    for rel_path, content in dictionaries.items():
        path = translations_dir / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(content, indent=2), encoding="utf-8")

    return {
        "root": str(tmp_path),
        "source_dir": str(source_dir),
        "translations_dir": str(translations_dir),
        "dest_dir": str(dest_dir),
        "missing_keys_file": os.path.join(str(tmp_path), "Translations", "addedKey.json"),
        "duplicate_keys_file": os.path.join(str(tmp_path), "Translations", "duplicateKey.json"),
        "deleted_keys_file": os.path.join(str(tmp_path), "Translations", "deletedKey.json"),
    }

"""
End-to-end tests for the `localize-diagrams` command line.

The Mermaid CLI is replaced by a fake `subprocess.run` that records the
localized input and writes a placeholder SVG, so no Node.js toolchain is needed.
"""
import json
import os
import stat
from unittest.mock import MagicMock, patch

import pytest
import yaml

from src.localize_diagrams import main


def _read(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def cli_env(project_layout, monkeypatch):
    root = project_layout["root"]
    monkeypatch.chdir(root)
    for name in ("DIAGRAM_LOCALIZER_CONFIG_FILE", "MMDC_PATH", "RENDER_TIMEOUT_SECONDS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    mmdc = os.path.join(root, "node_modules", ".bin", "mmdc")
    os.makedirs(os.path.dirname(mmdc))
    with open(mmdc, "w", encoding="utf-8") as f:
        f.write("#!/bin/sh\n")
    os.chmod(mmdc, os.stat(mmdc).st_mode | stat.S_IXUSR)

    config = {
        "source_dir": project_layout["source_dir"],
        "dest_dir": project_layout["dest_dir"],
        "translations_dir": project_layout["translations_dir"],
        "renderer": {"executable": mmdc, "timeout_seconds": 10},
        "reports": {
            "missing_keys_file": project_layout["missing_keys_file"],
            "duplicate_keys_file": project_layout["duplicate_keys_file"],
            "deleted_keys_file": project_layout["deleted_keys_file"],
        },
        "show_progress": False,
        "logging": {"log_file_path": os.path.join(root, "logs", "run.log"), "log_to_console": False},
    }
    config_path = os.path.join(root, "config.yaml")
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(config, f)

    rendered = {}

    def fake_run(command, **kwargs):
        input_path = command[command.index("-i") + 1]
        output_path = command[command.index("-o") + 1]
        with open(input_path, encoding="utf-8") as f:
            rendered[output_path] = f.read()
        with open(output_path, "w", encoding="utf-8") as f:
            f.write("<svg/>")
        return MagicMock(returncode=0, stderr="", stdout="")

    with patch("src.render_driver.subprocess.run", side_effect=fake_run):
        yield dict(project_layout, config=config_path, rendered=rendered)


def test_no_arguments_prints_help(capsys):
    assert main([]) == 0
    assert "usage: localize-diagrams" in capsys.readouterr().out


def test_language_is_required(cli_env):
    with pytest.raises(SystemExit) as exc_info:
        main(["-v"])
    assert exc_info.value.code == 2


def test_validate_reports_missing_and_unused(cli_env, capsys):
    assert main(["-l", "en", "-v"]) == 0

    out = capsys.readouterr().out
    assert "MISSING keys in JSON (1)" in out
    assert "UNUSED keys in JSON (1)" in out
    assert "OLD_KEY" in out
    assert "--clean" in out
    assert _read(cli_env["missing_keys_file"]) == {"en": {"DESC": {"value": "", "files": []}}}
    assert not os.path.exists(cli_env["duplicate_keys_file"])
    # Validation alone never edits dictionaries
    assert _read(os.path.join(cli_env["translations_dir"], "en", "extra.json")) == {"OLD_KEY": "foo"}
    assert cli_env["rendered"] == {}


def test_validate_clears_previous_reports(cli_env):
    with open(cli_env["missing_keys_file"], "w", encoding="utf-8") as f:
        json.dump({"de": {"STALE": {"value": "", "files": []}}}, f)

    assert main(["-l", "fr", "-v"]) == 0

    assert not os.path.exists(cli_env["missing_keys_file"])


def test_validate_reports_duplicates(cli_env, capsys):
    with open(os.path.join(cli_env["translations_dir"], "en", "zz.json"), "w", encoding="utf-8") as f:
        json.dump({"GREETING": "Hello"}, f)

    assert main(["-l", "en", "-v"]) == 0

    assert "DUPLICATE keys between files (1)" in capsys.readouterr().out
    assert _read(cli_env["duplicate_keys_file"]) == {
        "en": {"GREETING": {"value": "Hi", "files": ["main.json", "zz.json"], "all_values": ["Hi", "Hello"]}}
    }


def test_validate_and_clean_all_languages(cli_env):
    assert main(["-l", "all", "-v", "-c"]) == 0

    assert _read(os.path.join(cli_env["translations_dir"], "en", "extra.json")) == {}
    assert _read(cli_env["deleted_keys_file"]) == {
        "en": {"OLD_KEY": {"value": "foo", "files": ["extra.json"]}}
    }
    assert _read(cli_env["missing_keys_file"]) == {"en": {"DESC": {"value": "", "files": []}}}


def test_clean_only_mode(cli_env):
    assert main(["-l", "en", "-c"]) == 0

    assert _read(cli_env["deleted_keys_file"])["en"]["OLD_KEY"]["value"] == "foo"
    assert not os.path.exists(cli_env["missing_keys_file"])
    assert cli_env["rendered"] == {}

    # Second run has nothing left to remove
    assert main(["-l", "en", "-c"]) == 0
    assert list(_read(cli_env["deleted_keys_file"])["en"]) == ["OLD_KEY"]


def test_clean_is_limited_to_requested_files(cli_env):
    assert main(["-l", "fr", "-c", "login"]) == 0

    # Only GREETING is referenced by login.mmd, so the other French keys go
    assert _read(os.path.join(cli_env["translations_dir"], "fr", "main.json")) == {"GREETING": "Salut"}


def test_render_all_languages(cli_env):
    assert main(["-l", "all"]) == 0

    dest = cli_env["dest_dir"]
    fr_overview = os.path.join(dest, "fr", "overview.svg")
    en_overview = os.path.join(dest, "en", "overview.svg")
    assert os.path.exists(fr_overview)
    assert os.path.exists(os.path.join(dest, "fr", "flows", "login.svg"))
    assert os.path.exists(os.path.join(dest, "en", "flows", "login.svg"))
    assert cli_env["rendered"][fr_overview] == "graph TD\n  A[Bonjour] --> B[Description]\n"
    # DESC has no English value and is left verbatim
    assert cli_env["rendered"][en_overview] == "graph TD\n  A[Hello] --> B[{{DESC}}]\n"


def test_validate_then_execute(cli_env):
    assert main(["-l", "fr", "-v", "-x"]) == 0
    assert len(cli_env["rendered"]) == 2


def test_unknown_files_are_skipped(cli_env):
    assert main(["-l", "en", "nope", "overview"]) == 0
    assert list(cli_env["rendered"]) == [os.path.join(cli_env["dest_dir"], "en", "overview.svg")]


def test_no_files_found_is_a_setup_error(cli_env):
    assert main(["-l", "en", "nope"]) == 1


def test_no_language_directory_is_a_setup_error(cli_env, tmp_path):
    empty = tmp_path / "empty-translations"
    empty.mkdir()
    with open(cli_env["config"], encoding="utf-8") as f:
        config = yaml.safe_load(f)
    config["translations_dir"] = str(empty)
    with open(cli_env["config"], "w", encoding="utf-8") as f:
        yaml.dump(config, f)

    assert main(["-l", "all", "-v"]) == 1


def test_invalid_timeout_exits_with_error(cli_env, monkeypatch):
    monkeypatch.setenv("RENDER_TIMEOUT_SECONDS", "soon")

    assert main(["-l", "en"]) == 1
    assert cli_env["rendered"] == {}


def test_file_outside_source_dir_is_skipped(cli_env, tmp_path):
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    (elsewhere / "x.mmd").write_text("graph TD\n  A[{{TITLE}}]\n", encoding="utf-8")

    assert main(["-l", "en", str(elsewhere / "x.mmd"), "overview"]) == 0
    assert list(cli_env["rendered"]) == [os.path.join(cli_env["dest_dir"], "en", "overview.svg")]


def test_missing_renderer_is_a_setup_error(cli_env, monkeypatch):
    monkeypatch.setenv("MMDC_PATH", os.path.join(cli_env["root"], "nowhere", "mmdc"))

    with patch("src.render_driver.shutil.which", return_value=None):
        assert main(["-l", "en"]) == 1
    assert cli_env["rendered"] == {}


def test_strict_duplicates_refuse_to_render(cli_env):
    with open(os.path.join(cli_env["translations_dir"], "en", "zz.json"), "w", encoding="utf-8") as f:
        json.dump({"GREETING": "Hello"}, f)
    with open(cli_env["config"], encoding="utf-8") as f:
        config = yaml.safe_load(f)
    config["strict_duplicates"] = True
    with open(cli_env["config"], "w", encoding="utf-8") as f:
        yaml.dump(config, f)

    assert main(["-l", "en"]) == 1
    # Validation still works and reports the duplicate
    assert main(["-l", "en", "-v"]) == 0


def test_explicit_config_option(cli_env, monkeypatch, tmp_path):
    other_dir = tmp_path / "elsewhere"
    other_dir.mkdir()
    monkeypatch.chdir(other_dir)

    assert main(["-l", "fr", "--config", cli_env["config"], "overview"]) == 0
    assert os.path.join(cli_env["dest_dir"], "fr", "overview.svg") in cli_env["rendered"]

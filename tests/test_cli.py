import logging
from dataclasses import dataclass
from pathlib import Path

import pytest

from deploystore import AUTHORING, Encodable, Severity
from deploystore.cli import main
from deploystore.logging_config import DIAGNOSTICS_LOGGER


@pytest.fixture(autouse=True)
def _restore_echo_level():
    logger = logging.getLogger(DIAGNOSTICS_LOGGER)
    previous = logger.level
    yield
    logger.setLevel(previous)


@dataclass
class Relic(Encodable):
    name: str = ""


def base_args(project_root: Path, data_root: Path, mode: str):
    return ["--mode", mode, "--project-root", str(project_root), "--data-dir", str(data_root)]


def test_paths_command(project_root, data_root, capsys):
    assert main(base_args(project_root, data_root, "authoring") + ["paths"]) == 0
    out = capsys.readouterr().out
    assert "mode: authoring" in out
    assert f"resources_root: {project_root.resolve() / 'Resources'}" in out


def test_manifest_and_unpack_commands(make_store, project_root, data_root, capsys):
    store = make_store(AUTHORING)
    store.save(Relic("veil"), "veil", True)
    store.save(Relic("bone"), "bone", True)

    assert main(base_args(project_root, data_root, "authoring") + ["manifest"]) == 0
    assert capsys.readouterr().out.split() == ["veil", "bone"]

    assert main(base_args(project_root, data_root, "packaged") + ["unpack"]) == 0
    assert "copied=2" in capsys.readouterr().out
    assert (data_root / "DS_veil.bytes").is_file()


def test_unpack_without_tracker_fails(project_root, data_root, capsys):
    assert main(base_args(project_root, data_root, "packaged") + ["unpack"]) == 1


def test_manifest_without_tracker(project_root, data_root, capsys):
    assert main(base_args(project_root, data_root, "authoring") + ["manifest"]) == 0
    assert "No tracker" in capsys.readouterr().out


def test_log_show_and_clear(make_store, project_root, data_root, capsys):
    store = make_store(AUTHORING)
    store.log.append("something odd", Severity.WARNING)

    assert main(base_args(project_root, data_root, "authoring") + ["log", "show"]) == 0
    assert "[WARNING] something odd" in capsys.readouterr().out

    assert main(base_args(project_root, data_root, "authoring") + ["log", "clear"]) == 0
    assert store.log.parse_entries() == []


def test_verify_and_add_data_commands(make_store, project_root, data_root, capsys):
    args = base_args(project_root, data_root, "authoring")
    store = make_store(AUTHORING)
    store.save(Relic("veil"), "veil", True)

    assert main(args + ["verify"]) == 0
    assert "present=1 missing=0" in capsys.readouterr().out

    (project_root / "Resources" / "DS_veil.bytes").unlink()
    assert main(args + ["verify"]) == 1
    assert "missing: veil" in capsys.readouterr().out

    assert main(args + ["add-data"]) == 0
    assert capsys.readouterr().out.strip().endswith("Resources")


def test_cli_keeps_log_echo_quiet_unless_very_verbose(project_root, data_root):
    echo = logging.getLogger(DIAGNOSTICS_LOGGER)
    assert main(base_args(project_root, data_root, "authoring") + ["paths"]) == 0
    assert echo.level == logging.WARNING
    assert main(["-vv"] + base_args(project_root, data_root, "authoring") + ["paths"]) == 0
    assert echo.level == logging.DEBUG


def test_unpack_keeps_existing_runtime_saves(make_store, project_root, data_root, capsys):
    store = make_store(AUTHORING)
    store.save(Relic("veil"), "veil", True)
    args = base_args(project_root, data_root, "packaged") + ["unpack"]

    assert main(args) == 0
    assert "copied=1 kept=0" in capsys.readouterr().out
    assert main(args) == 0
    assert "copied=0 kept=1" in capsys.readouterr().out

import os

import pytest

import extract_strings
from extract_strings import extract_global_ini, find_extracted_ini, run_unp4k
from global_ini import read_ini_file
from user_settings import Settings, Workspace

from conftest import fake_unp4k, write_text


@pytest.fixture
def game_workspace(tmp_path):
    game_dir = tmp_path / "StarCitizen"
    write_text(game_dir / "LIVE" / "Data.p4k", "archive")
    unp4k = write_text(tmp_path / "tools" / "unp4k.exe", "binary")
    settings = Settings(game_install_path=str(game_dir), unp4k_path=unp4k, language="english")
    return Workspace(str(tmp_path / "tool"), settings)


def test_run_unp4k_missing_tool(tmp_path, capsys):
    assert run_unp4k(str(tmp_path / "unp4k.exe"), str(tmp_path / "Data.p4k"), str(tmp_path / "out")) is False
    assert "unp4k not found" in capsys.readouterr().out


def test_run_unp4k_reports_exit_code(game_workspace, monkeypatch, capsys):
    monkeypatch.setattr(extract_strings.subprocess, "run", fake_unp4k(returncode=3))
    settings = game_workspace.settings
    out_dir = os.path.join(game_workspace.root, "work")
    assert run_unp4k(settings.unp4k_path, game_workspace.p4k_path("LIVE"), out_dir) is False
    assert "non-zero exit code: 3" in capsys.readouterr().out


def test_extract_global_ini_copies_into_source_dir(game_workspace, monkeypatch):
    fake = fake_unp4k(content="k=v\n")
    monkeypatch.setattr(extract_strings.subprocess, "run", fake)

    path = extract_global_ini(game_workspace, "LIVE")

    assert path == game_workspace.source_ini_path("LIVE")
    assert read_ini_file(path) == {"k": "v"}
    cmd_args, _ = fake.calls[0]
    assert cmd_args[1] == game_workspace.p4k_path("LIVE")
    assert cmd_args[2] == "global.ini"
    assert not os.path.exists(os.path.join(game_workspace.source_dir("LIVE"), "_unp4k"))


def test_extract_global_ini_failure_returns_none(game_workspace, monkeypatch):
    monkeypatch.setattr(extract_strings.subprocess, "run", fake_unp4k(returncode=1))
    assert extract_global_ini(game_workspace, "LIVE") is None
    assert not os.path.exists(game_workspace.source_ini_path("LIVE"))


def test_extract_without_install_path(tmp_path):
    workspace = Workspace(str(tmp_path), Settings())
    assert extract_global_ini(workspace, "LIVE") is None


def test_find_extracted_ini_matches_language_case_insensitively(tmp_path):
    wanted = write_text(tmp_path / "Data" / "Localization" / "English" / "global.ini", "a=1")
    write_text(tmp_path / "Data" / "Localization" / "german_(germany)" / "global.ini", "a=2")
    assert find_extracted_ini(str(tmp_path), "english") == wanted
    assert find_extracted_ini(str(tmp_path), "french") is None

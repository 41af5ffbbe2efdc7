import json
import os

import pytest

from user_settings import (
    USER_CFG_CREATED,
    USER_CFG_ERROR,
    USER_CFG_OK,
    USER_CFG_UPDATED,
    Settings,
    Workspace,
    ensure_user_cfg,
    load_settings,
    parse_bool,
    save_settings,
)

from conftest import read_bytes, write_text


def test_settings_defaults():
    settings = Settings()
    assert settings.environments == ["LIVE"]
    assert settings.language == "english"
    assert settings.auto_write is False
    assert settings.game_install_path is None
    assert settings.created_at


def test_load_settings_missing_returns_none(tmp_path):
    assert load_settings(str(tmp_path / "config.json")) is None


def test_settings_round_trip_keeps_unknown_fields(tmp_path):
    path = write_text(tmp_path / "config.json", json.dumps({
        "gameInstallPath": "C:/Games/StarCitizen",
        "environments": ["live", "PTU"],
        "language": "english",
        "autoWrite": True,
        "createdAt": "2024-01-01T00:00:00",
        "themeColor": "amber",
    }))
    settings = load_settings(path)
    assert settings.environments == ["LIVE", "PTU"]
    assert settings.auto_write is True
    assert settings.unp4k_path is None
    assert settings.extra == {"themeColor": "amber"}

    save_settings(settings, path)
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    assert data["themeColor"] == "amber"
    assert data["gameInstallPath"] == "C:/Games/StarCitizen"
    assert data["createdAt"] == "2024-01-01T00:00:00"
    assert data["lastBuildVersion"] is None


def test_load_settings_coerces_string_auto_write(tmp_path):
    path = write_text(tmp_path / "config.json", json.dumps({"autoWrite": "false", "environments": []}))
    settings = load_settings(path)
    assert settings.auto_write is False
    assert settings.environments == ["LIVE"]

    write_text(path, json.dumps({"autoWrite": "Yes"}))
    assert load_settings(path).auto_write is True


def test_load_settings_rejects_unknown_auto_write_word(tmp_path):
    path = write_text(tmp_path / "config.json", json.dumps({"autoWrite": "sometimes"}))
    with pytest.raises(ValueError):
        load_settings(path)


@pytest.mark.parametrize("value, expected", [
    (True, True), (False, False), (None, False), (1, True), (0, False),
    ("true", True), ("FALSE", False), (" on ", True), ("off", False), ("1", True), ("0", False),
])
def test_parse_bool(value, expected):
    assert parse_bool(value) is expected


def test_load_settings_rejects_non_object(tmp_path):
    path = write_text(tmp_path / "config.json", "[1, 2]")
    with pytest.raises(ValueError):
        load_settings(path)


def test_ensure_user_cfg_creates_file(tmp_path):
    path = str(tmp_path / "LIVE" / "user.cfg")
    assert ensure_user_cfg(path, "english") == USER_CFG_CREATED
    with open(path, encoding="utf-8") as f:
        assert f.read().strip() == "g_language = english"


def test_ensure_user_cfg_is_idempotent(tmp_path):
    path = str(tmp_path / "user.cfg")
    ensure_user_cfg(path, "english")
    before = os.path.getmtime(path)
    os.utime(path, (before - 100, before - 100))
    assert ensure_user_cfg(path, "english") == USER_CFG_OK
    assert os.path.getmtime(path) == before - 100


def test_ensure_user_cfg_corrects_wrong_language(tmp_path):
    path = write_text(tmp_path / "user.cfg", "r_DisplayInfo = 1\r\ng_language = german\r\nsys_spec = 3\r\n")
    assert ensure_user_cfg(path, "english") == USER_CFG_UPDATED
    assert read_bytes(path) == b"r_DisplayInfo = 1\r\ng_language = english\r\nsys_spec = 3\r\n"


def test_ensure_user_cfg_removes_duplicate_lines(tmp_path):
    path = write_text(tmp_path / "user.cfg", "g_language = english\ng_language=french\n")
    assert ensure_user_cfg(path, "english") == USER_CFG_UPDATED
    with open(path, encoding="utf-8") as f:
        assert f.read().splitlines() == ["g_language = english"]
    assert ensure_user_cfg(path, "english") == USER_CFG_OK


def test_ensure_user_cfg_appends_when_absent(tmp_path):
    path = write_text(tmp_path / "user.cfg", "sys_spec = 3")
    assert ensure_user_cfg(path, "english") == USER_CFG_UPDATED
    with open(path, encoding="utf-8") as f:
        assert f.read().splitlines() == ["sys_spec = 3", "g_language = english"]


def test_ensure_user_cfg_reports_error(tmp_path):
    # a directory in place of the file cannot be read
    os.makedirs(tmp_path / "user.cfg")
    assert ensure_user_cfg(str(tmp_path / "user.cfg"), "english") == USER_CFG_ERROR


def test_workspace_paths_without_install_path(tmp_path):
    workspace = Workspace(str(tmp_path), Settings(language="english"))
    assert workspace.p4k_path("LIVE") is None
    assert workspace.output_ini_path("LIVE") == os.path.join(
        str(tmp_path), "output", "LIVE", "data", "Localization", "english", "global.ini")
    assert workspace.source_ini_path("PTU") == os.path.join(str(tmp_path), "source", "PTU", "global.ini")


def test_workspace_paths_with_install_path(tmp_path):
    game_dir = str(tmp_path / "StarCitizen")
    workspace = Workspace(str(tmp_path / "tool"), Settings(game_install_path=game_dir, language="english"))
    assert workspace.p4k_path("PTU") == os.path.join(game_dir, "PTU", "Data.p4k")
    assert workspace.user_cfg_path("LIVE") == os.path.join(game_dir, "LIVE", "user.cfg")


def test_resolve_environments(tmp_path):
    workspace = Workspace(str(tmp_path), Settings(environments=["LIVE", "PTU"]))
    assert workspace.resolve_environments() == ["LIVE", "PTU"]
    assert workspace.resolve_environments("eptu") == ["EPTU"]


def test_workspace_load_defaults_when_no_config(tmp_path):
    workspace = Workspace.load(str(tmp_path))
    assert workspace.settings.environments == ["LIVE"]
    workspace.save()
    assert os.path.exists(workspace.settings_path)


def test_resolve_environments_falls_back_to_default_when_emptied(tmp_path):
    workspace = Workspace(str(tmp_path))
    workspace.settings.environments = []
    assert workspace.resolve_environments() == ["LIVE"]

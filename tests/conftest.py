import os
import subprocess

import pytest

from user_settings import Settings, Workspace

BASE_INI = "a=1\nb=2\nc=3\n"


def write_text(path, text, bom=False):
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, 'w', encoding='utf-8-sig' if bom else 'utf-8', newline='') as f:
        f.write(text)
    return str(path)


def read_bytes(path):
    with open(path, 'rb') as f:
        return f.read()


@pytest.fixture
def workspace(tmp_path):
    """Workspace rooted at tmp_path with no game install path (merge output goes under output/)."""
    return Workspace(str(tmp_path), Settings(environments=["LIVE"], language="english"))


@pytest.fixture
def live_base(workspace):
    return write_text(workspace.source_ini_path("LIVE"), BASE_INI, bom=True)


def fake_unp4k(returncode=0, content="a=1\nb=2\n"):
    calls = []

    def run(cmd_args, cwd=None, **kwargs):
        calls.append((cmd_args, cwd))
        if returncode == 0:
            write_text(os.path.join(cwd, "Data", "Localization", "english", "global.ini"), content, bom=True)
        return subprocess.CompletedProcess(cmd_args, returncode, stdout="", stderr="")

    run.calls = calls
    return run

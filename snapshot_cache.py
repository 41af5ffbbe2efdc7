import os
import re
import shutil
from datetime import datetime

from global_ini import read_ini_file

VERSION_LABEL_UNSAFE_REGEX = re.compile(r'[^A-Za-z0-9_.-]')
SNAPSHOT_EXTENSION = ".ini"


def sanitize_version_label(version_label: str) -> str:
    return VERSION_LABEL_UNSAFE_REGEX.sub('_', version_label)


def snapshot_filename(version_label: str, environment: str) -> str:
    return f"{sanitize_version_label(version_label)}-{environment}{SNAPSHOT_EXTENSION}"


class Snapshot:
    """A cached copy of one environment's global.ini for one game build."""

    def __init__(self, version_label, environment, path, modified):
        self.version_label = version_label
        self.environment = environment
        self.path = path
        self.modified = modified

    @property
    def display_name(self) -> str:
        return f"{self.version_label} ({self.environment}, {self.modified:%Y-%m-%d %H:%M})"

    def __repr__(self):
        return f"Snapshot(version_label='{self.version_label}', environment='{self.environment}', path='{self.path}')"


def parse_snapshot_filename(filename: str):
    """Splits '<version>-<environment>.ini' at the last '-'. Returns None for other names."""
    if not filename.lower().endswith(SNAPSHOT_EXTENSION):
        return None
    stem = filename[:-len(SNAPSHOT_EXTENSION)]
    version_label, sep, environment = stem.rpartition('-')
    if not sep or not version_label or not environment:
        return None
    return version_label, environment


def save_snapshot(cache_dir: str, version_label: str, environment: str, source_path: str):
    """
    Copies source_path into the cache as the snapshot for (version, environment).
    An existing snapshot with the same name is replaced. Returns the Snapshot,
    or None when the source file is missing or the copy fails.
    """
    if not os.path.isfile(source_path):
        print(f"ERROR: Cannot snapshot missing file: {source_path}")
        return None
    snapshot_path = os.path.join(cache_dir, snapshot_filename(version_label, environment))
    try:
        os.makedirs(cache_dir, exist_ok=True)
        shutil.copyfile(source_path, snapshot_path)
    except OSError as e:
        print(f"ERROR: Failed to cache {source_path} as {snapshot_path}. Reason: {e}")
        return None
    print(f"INFO: Cached global.ini snapshot: {os.path.basename(snapshot_path)}")
    modified = datetime.fromtimestamp(os.path.getmtime(snapshot_path))
    return Snapshot(sanitize_version_label(version_label), environment, snapshot_path, modified)


def list_snapshots(cache_dir: str, environment: str = None) -> list:
    """Cached snapshots, newest first. An absent cache directory yields an empty list."""
    if not os.path.isdir(cache_dir):
        return []
    snapshots = []
    for filename in os.listdir(cache_dir):
        parsed = parse_snapshot_filename(filename)
        if parsed is None:
            continue
        version_label, snapshot_env = parsed
        if environment and snapshot_env.upper() != environment.upper():
            continue
        path = os.path.join(cache_dir, filename)
        if not os.path.isfile(path):
            continue
        modified = datetime.fromtimestamp(os.path.getmtime(path))
        snapshots.append(Snapshot(version_label, snapshot_env, path, modified))
    snapshots.sort(key=lambda s: (s.modified, s.version_label), reverse=True)
    return snapshots


def find_snapshot(cache_dir: str, version_label: str, environment: str):
    path = os.path.join(cache_dir, snapshot_filename(version_label, environment))
    if not os.path.isfile(path):
        return None
    modified = datetime.fromtimestamp(os.path.getmtime(path))
    return Snapshot(sanitize_version_label(version_label), environment, path, modified)


def latest_snapshot(cache_dir: str, environment: str, exclude_version: str = None):
    """Most recent snapshot for environment, skipping exclude_version. None if there is none."""
    excluded = sanitize_version_label(exclude_version) if exclude_version else None
    for snapshot in list_snapshots(cache_dir, environment):
        if excluded is not None and snapshot.version_label == excluded:
            continue
        return snapshot
    return None


def load_snapshot(snapshot: Snapshot) -> dict:
    return read_ini_file(snapshot.path)

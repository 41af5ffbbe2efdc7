import json
import os
import re
from datetime import datetime

# --- Configuration ---
SETTINGS_FILENAME = "config.json"
TARGET_FILENAME = "target_strings.ini"
SOURCE_DIRNAME = "source"
CACHE_DIRNAME = "cache"
OUTPUT_DIRNAME = "output"
REPORTS_DIRNAME = "reports"
GLOBAL_INI_FILENAME = "global.ini"
P4K_FILENAME = "Data.p4k"
USER_CFG_FILENAME = "user.cfg"

DEFAULT_ENVIRONMENTS = ["LIVE"]
DEFAULT_LANGUAGE = "english"

USER_CFG_CREATED = "created"
USER_CFG_UPDATED = "updated"
USER_CFG_OK = "ok"
USER_CFG_ERROR = "error"

TRUE_WORDS = ("1", "true", "yes", "on")
FALSE_WORDS = ("0", "false", "no", "off")

USER_CFG_LANGUAGE_REGEX = re.compile(r'^\s*g_language\s*=\s*(.*?)\s*$', re.IGNORECASE)

# JSON field name -> Settings attribute
SETTINGS_FIELDS = {
    "gameInstallPath": "game_install_path",
    "environments": "environments",
    "language": "language",
    "unp4kPath": "unp4k_path",
    "lastBuildVersion": "last_build_version",
    "autoWrite": "auto_write",
    "createdAt": "created_at",
}


def parse_bool(value, field: str = "value") -> bool:
    """Accepts real booleans, numbers and true/false words (yes/no, on/off, 1/0). None is False."""
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, (int, float)):
        return value != 0
    word = str(value).strip().lower()
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    raise ValueError(f"{field} expects true/false, got '{value}'")


class Settings:
    """
    Tool settings as stored in config.json. Unknown JSON fields are kept in extra.
    An empty environment list means DEFAULT_ENVIRONMENTS.
    """

    def __init__(self, game_install_path=None, environments=None, language=DEFAULT_LANGUAGE,
                 unp4k_path=None, last_build_version=None, auto_write=False, created_at=None, extra=None):
        self.game_install_path = game_install_path
        self.environments = list(environments) if environments else list(DEFAULT_ENVIRONMENTS)
        self.language = language or DEFAULT_LANGUAGE
        self.unp4k_path = unp4k_path
        self.last_build_version = last_build_version
        self.auto_write = parse_bool(auto_write, "autoWrite")
        self.created_at = created_at or datetime.now().isoformat(timespec="seconds")
        self.extra = dict(extra) if extra else {}

    @classmethod
    def from_dict(cls, data: dict):
        if not isinstance(data, dict):
            raise ValueError("Settings JSON must be an object.")
        known = {attr: data[field] for field, attr in SETTINGS_FIELDS.items() if field in data}
        environments = known.get("environments")
        if environments is not None and not isinstance(environments, list):
            environments = [environments]
        if environments is not None:
            known["environments"] = [str(env).upper() for env in environments if str(env).strip()]
        extra = {k: v for k, v in data.items() if k not in SETTINGS_FIELDS}
        return cls(extra=extra, **known)

    def to_dict(self) -> dict:
        data = dict(self.extra)
        for field, attr in SETTINGS_FIELDS.items():
            data[field] = getattr(self, attr)
        return data

    def __repr__(self):
        return f"Settings({self.to_dict()!r})"


def load_settings(settings_path: str):
    """Returns Settings, or None when the file does not exist yet."""
    if not os.path.exists(settings_path):
        return None
    with open(settings_path, 'r', encoding='utf-8-sig') as f:
        data = json.load(f)
    return Settings.from_dict(data)


def save_settings(settings: Settings, settings_path: str):
    os.makedirs(os.path.dirname(os.path.abspath(settings_path)), exist_ok=True)
    with open(settings_path, 'w', encoding='utf-8') as f:
        json.dump(settings.to_dict(), f, indent=4, ensure_ascii=False)


def ensure_user_cfg(cfg_path: str, language: str) -> str:
    """
    Makes sure user.cfg holds exactly one 'g_language = <language>' line.
    Returns USER_CFG_CREATED, USER_CFG_UPDATED, USER_CFG_OK or USER_CFG_ERROR.
    A file that is already correct is not rewritten.
    """
    wanted_line = f"g_language = {language}"
    try:
        if not os.path.exists(cfg_path):
            os.makedirs(os.path.dirname(os.path.abspath(cfg_path)), exist_ok=True)
            with open(cfg_path, 'w', encoding='utf-8', newline='') as f:
                f.write(wanted_line + os.linesep)
            return USER_CFG_CREATED

        with open(cfg_path, 'r', encoding='utf-8-sig', newline='') as f:
            lines = f.read().splitlines(keepends=True)

        language_indexes = [i for i, line in enumerate(lines) if USER_CFG_LANGUAGE_REGEX.match(line)]
        if len(language_indexes) == 1:
            current_value = USER_CFG_LANGUAGE_REGEX.match(lines[language_indexes[0]]).group(1)
            if current_value == language:
                return USER_CFG_OK

        if language_indexes:
            first = language_indexes[0]
            old_line = lines[first]
            terminator = old_line[len(old_line.rstrip('\r\n')):]
            lines[first] = wanted_line + terminator
            for i in reversed(language_indexes[1:]):
                del lines[i]
        else:
            if lines and not lines[-1].endswith(('\n', '\r')):
                lines[-1] += os.linesep
            lines.append(wanted_line + os.linesep)

        with open(cfg_path, 'w', encoding='utf-8', newline='') as f:
            f.write("".join(lines))
        return USER_CFG_UPDATED
    except OSError as e:
        print(f"ERROR: Could not update {cfg_path}: {e}")
        return USER_CFG_ERROR


class Workspace:
    """
    Everything a workflow needs to locate its files: the tool's working
    directory and the loaded settings. Passed explicitly to every step.

    Layout under root:
        config.json                       settings
        target_strings.ini                the user's custom strings
        source/<ENV>/global.ini           extracted game file
        cache/<version>-<ENV>.ini         snapshots per game build
        reports/                          exported diff workbooks
        output/<ENV>/...                  merge output when no game path is set
    """

    def __init__(self, root: str, settings: Settings = None):
        self.root = os.path.abspath(root)
        self.settings = settings if settings is not None else Settings()

    @classmethod
    def load(cls, root: str):
        """Loads config.json from root, falling back to default settings when absent."""
        settings_path = os.path.join(os.path.abspath(root), SETTINGS_FILENAME)
        settings = load_settings(settings_path)
        if settings is None:
            print(f"INFO: No settings found at {settings_path}. Using defaults.")
            settings = Settings()
        return cls(root, settings)

    def save(self):
        save_settings(self.settings, self.settings_path)

    @property
    def settings_path(self) -> str:
        return os.path.join(self.root, SETTINGS_FILENAME)

    @property
    def target_path(self) -> str:
        return os.path.join(self.root, TARGET_FILENAME)

    @property
    def cache_dir(self) -> str:
        return os.path.join(self.root, CACHE_DIRNAME)

    @property
    def reports_dir(self) -> str:
        return os.path.join(self.root, REPORTS_DIRNAME)

    def source_dir(self, environment: str) -> str:
        return os.path.join(self.root, SOURCE_DIRNAME, environment)

    def source_ini_path(self, environment: str) -> str:
        return os.path.join(self.source_dir(environment), GLOBAL_INI_FILENAME)

    def environment_dir(self, environment: str):
        """The game's folder for environment, or None when no install path is configured."""
        if not self.settings.game_install_path:
            return None
        return os.path.join(self.settings.game_install_path, environment)

    def p4k_path(self, environment: str):
        env_dir = self.environment_dir(environment)
        return os.path.join(env_dir, P4K_FILENAME) if env_dir else None

    def _output_base(self, environment: str) -> str:
        return self.environment_dir(environment) or os.path.join(self.root, OUTPUT_DIRNAME, environment)

    def output_ini_path(self, environment: str) -> str:
        return os.path.join(self._output_base(environment), "data", "Localization",
                            self.settings.language, GLOBAL_INI_FILENAME)

    def user_cfg_path(self, environment: str) -> str:
        return os.path.join(self._output_base(environment), USER_CFG_FILENAME)

    def resolve_environments(self, override: str = None) -> list:
        if override:
            return [override.upper()]
        return list(self.settings.environments or DEFAULT_ENVIRONMENTS)

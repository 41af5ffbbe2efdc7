import os
import re
import shutil
import tempfile

# --- Constants ---
UTF8_BOM = '\ufeff'
METADATA_COMMENT_REGEX = re.compile(r'^\s*;\s*@original=(.*)$', re.DOTALL)

LINE_METADATA = "metadata"
LINE_COMMENT = "comment"
LINE_BLANK = "blank"
LINE_ENTRY = "entry"
LINE_OPAQUE = "opaque"


class IniLine:
    """One classified line of a global.ini style file.

    kind is one of LINE_METADATA, LINE_COMMENT, LINE_BLANK, LINE_ENTRY or
    LINE_OPAQUE. For entries key/prefix/value are filled in, for metadata
    comments value holds the recorded original text.
    """
    __slots__ = ("kind", "text", "key", "prefix", "value")

    def __init__(self, kind, text, key=None, prefix=None, value=None):
        self.kind, self.text, self.key, self.prefix, self.value = kind, text, key, prefix, value

    def __repr__(self):
        return f"IniLine(kind='{self.kind}', text={self.text!r})"


def split_entry(line: str):
    """Returns (key, prefix, value) for a line containing '=', otherwise None.

    prefix is everything up to and including the first '=', untouched, so the
    original key spacing survives a rewrite of the value.
    """
    eq_index = line.find('=')
    if eq_index < 0:
        return None
    prefix = line[:eq_index + 1]
    return prefix[:-1].strip(), prefix, line[eq_index + 1:]


def classify_line(line: str) -> IniLine:
    match = METADATA_COMMENT_REGEX.match(line)
    if match:
        return IniLine(LINE_METADATA, line, value=match.group(1))
    stripped = line.strip()
    if not stripped:
        return IniLine(LINE_BLANK, line)
    if stripped.startswith(';'):
        return IniLine(LINE_COMMENT, line)
    entry = split_entry(line)
    if entry is not None:
        key, prefix, value = entry
        return IniLine(LINE_ENTRY, line, key=key, prefix=prefix, value=value)
    return IniLine(LINE_OPAQUE, line)


def normalize_line_endings(text: str) -> str:
    if not isinstance(text, str): return ""
    return text.replace('\r\n', '\n').replace('\r', '\n')


def split_lines(text: str) -> list:
    """Splits file text into lines without terminators.

    A leading BOM is dropped and a single trailing terminator does not produce
    an extra empty line.
    """
    if not text:
        return []
    if text.startswith(UTF8_BOM):
        text = text[1:]
    normalized = normalize_line_endings(text)
    if normalized.endswith('\n'):
        normalized = normalized[:-1]
    return normalized.split('\n')


def parse_ini_text(text: str) -> dict:
    """Parses key=value text into an insertion-ordered key -> value dict.

    Lines without '=' are skipped. A repeated key keeps its first position
    but takes the value of its last occurrence.
    """
    table = {}
    for line in split_lines(text):
        entry = split_entry(line)
        if entry is None:
            continue
        key, _, value = entry
        table[key] = value
    return table


def read_ini_text(file_path: str) -> str:
    # utf-8-sig: game files ship with a BOM, hand-edited ones usually don't
    with open(file_path, 'r', encoding='utf-8-sig', newline='') as f:
        return f.read()


def read_ini_file(file_path: str) -> dict:
    """Reads and parses a key=value file.

    Raises FileNotFoundError when absent and UnicodeDecodeError when the file
    is not UTF-8.
    """
    return parse_ini_text(read_ini_text(file_path))


def table_to_lines(table: dict) -> list:
    return [f"{key}={value}" for key, value in table.items()]


def ends_with_line_break(text: str) -> bool:
    return bool(text) and text.endswith(('\n', '\r'))


def serialize_lines(lines, newline: str = os.linesep, trailing_newline: bool = False) -> str:
    """Joins lines with newline (no BOM). A final terminator is only added when asked for."""
    text = newline.join(lines)
    if trailing_newline and lines:
        text += newline
    return text


def _apply_file_mode(temp_path: str, file_path: str):
    # mkstemp creates 0600 files; keep the replaced file's mode, else the umask default
    if os.path.exists(file_path):
        shutil.copymode(file_path, temp_path)
        return
    umask = os.umask(0)
    os.umask(umask)
    os.chmod(temp_path, 0o666 & ~umask)


def write_ini_lines(file_path: str, lines, newline: str = os.linesep, trailing_newline: bool = False):
    """Writes lines as UTF-8 with a BOM, replacing file_path atomically.

    The game only picks up the localization file when it carries the BOM.
    OSError from the write propagates to the caller; nothing is left behind
    at file_path when it does.
    """
    content = UTF8_BOM + serialize_lines(lines, newline, trailing_newline)
    target_dir = os.path.dirname(os.path.abspath(file_path))
    os.makedirs(target_dir, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=".tmp_", suffix=".ini", dir=target_dir)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
        _apply_file_mode(temp_path, file_path)
        os.replace(temp_path, file_path)
    except BaseException:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise

import os

from global_ini import (
    LINE_ENTRY,
    LINE_METADATA,
    classify_line,
    read_ini_file,
    read_ini_text,
    split_lines,
)

# --- Constants ---
METADATA_PREFIX = "; @original="
TARGET_FILE_HEADER = [
    "; Custom strings merged into global.ini.",
    "; One key=value per line. A '; @original=<text>' line directly above a key",
    "; records the game's text at the time the override was written.",
]


def parse_target_text(text: str):
    """
    Parses the target strings file.
    Returns (overrides, originals): overrides maps key -> replacement text in
    file order, originals maps key -> the '@original' text recorded directly
    above that key. A blank line or any other comment between the metadata
    line and the key drops the metadata.
    """
    overrides = {}
    originals = {}
    pending_original = None

    for line in split_lines(text):
        parsed = classify_line(line)
        if parsed.kind == LINE_METADATA:
            pending_original = parsed.value
        elif parsed.kind == LINE_ENTRY:
            overrides[parsed.key] = parsed.value
            if pending_original is not None:
                originals[parsed.key] = pending_original
                pending_original = None
        else:
            # LINE_BLANK, LINE_COMMENT and LINE_OPAQUE all break the association
            pending_original = None
    return overrides, originals


def read_target_file(file_path: str):
    """Raises FileNotFoundError when the target file is absent."""
    return parse_target_text(read_ini_text(file_path))


def ensure_target_file(file_path: str, newline: str = os.linesep) -> bool:
    """Creates the target file with a short header when it does not exist yet.
    Returns True when a file was created."""
    if os.path.exists(file_path):
        return False
    os.makedirs(os.path.dirname(os.path.abspath(file_path)), exist_ok=True)
    with open(file_path, 'w', encoding='utf-8', newline=newline) as f:
        for line in TARGET_FILE_HEADER:
            f.write(line + "\n")
    print(f"INFO: Created target strings file: {file_path}")
    return True


def format_target_entry(key: str, value: str) -> list:
    return [f"{METADATA_PREFIX}{value}", f"{key}={value}"]


def append_target_entries(file_path: str, entries, newline: str = os.linesep) -> int:
    """
    Appends (key, value) entries to the target file, each as an '@original'
    metadata line followed by key=value and preceded by one blank line.
    The file is written as plain UTF-8, never with a BOM, since users edit it
    by hand. Returns the number of entries written.
    """
    entries = list(entries)
    if not entries:
        return 0

    existing_text = ""
    if os.path.exists(file_path):
        with open(file_path, 'r', encoding='utf-8-sig', newline='') as f:
            existing_text = f.read()

    chunks = []
    has_prior_content = bool(existing_text)
    if existing_text and not existing_text.endswith(('\n', '\r')):
        chunks.append("\n")
    for key, value in entries:
        if has_prior_content:
            chunks.append("\n")
        chunks.extend(line + "\n" for line in format_target_entry(key, value))
        has_prior_content = True

    with open(file_path, 'a', encoding='utf-8', newline=newline) as f:
        f.write("".join(chunks))
    return len(entries)


def add_target_keys(workspace, environment: str, keys) -> list:
    """
    Copies keys from the environment's current global.ini into the target
    file, recording the current text both as '@original' and as the starting
    override. Keys already customized or unknown to the game are skipped.
    Returns the keys that were appended, or None when an input is missing or
    unreadable.
    """
    base_path = workspace.source_ini_path(environment)
    target_path = workspace.target_path
    try:
        base_table = read_ini_file(base_path)
    except FileNotFoundError:
        print(f"ERROR: Base global.ini not found for {environment}: {base_path}")
        print("       Run the extract step first.")
        return None
    except UnicodeDecodeError as e:
        print(f"ERROR: Base global.ini for {environment} is not valid UTF-8: {base_path} ({e})")
        return None

    ensure_target_file(target_path)
    try:
        overrides, _ = read_target_file(target_path)
    except UnicodeDecodeError as e:
        print(f"ERROR: Target strings file is not valid UTF-8: {target_path} ({e})")
        return None

    new_entries = []
    for key in keys:
        key = key.strip()
        if not key:
            continue
        if key in overrides:
            print(f"WARNING: '{key}' is already in the target strings file. Skipping.")
            continue
        if key not in base_table:
            print(f"WARNING: '{key}' does not exist in {environment} global.ini. Skipping.")
            continue
        if any(existing_key == key for existing_key, _ in new_entries):
            continue
        new_entries.append((key, base_table[key]))

    try:
        append_target_entries(target_path, new_entries)
    except OSError as e:
        print(f"ERROR: Could not append to {target_path}: {e}")
        return None
    for key, _ in new_entries:
        print(f"INFO: Added '{key}' to {os.path.basename(target_path)}")
    return [key for key, _ in new_entries]

import os

from tqdm import tqdm

from global_ini import ends_with_line_break, read_ini_text, split_entry, split_lines, write_ini_lines
from target_strings import read_target_file


class MergeResult:
    """Output of a merge pass: the rewritten lines plus which overrides were applied."""

    def __init__(self, lines, merged_count, merged_keys, trailing_newline=False):
        self.lines = lines
        self.merged_count = merged_count
        self.merged_keys = merged_keys
        self.trailing_newline = trailing_newline

    def __repr__(self):
        return f"MergeResult(lines={len(self.lines)}, merged_count={self.merged_count})"


def merge_lines(base_text: str, overrides: dict, show_progress: bool = False) -> MergeResult:
    """
    Applies overrides to base_text line by line.
    Every input line produces exactly one output line in the same position;
    only the value part of lines whose key is overridden is replaced, the
    text up to and including the first '=' is kept as-is. Whether base_text
    ended with a line break is carried over in trailing_newline.
    """
    output_lines = []
    merged_keys = set()
    merged_count = 0

    base_lines = split_lines(base_text)
    for line in tqdm(base_lines, desc="Merging strings", unit="line", disable=not show_progress):
        entry = split_entry(line)
        if entry is not None:
            key, prefix, _ = entry
            if key in overrides:
                output_lines.append(prefix + overrides[key])
                merged_keys.add(key)
                merged_count += 1
                continue
        output_lines.append(line)

    return MergeResult(output_lines, merged_count, merged_keys, ends_with_line_break(base_text))


def find_orphans(overrides: dict, merged_keys) -> list:
    """Override keys that never matched a base line, in target file order."""
    return [key for key in overrides if key not in merged_keys]


class MergeSummary:
    def __init__(self, output_path, merged_count, orphans):
        self.output_path = output_path
        self.merged_count = merged_count
        self.orphans = orphans

    def __repr__(self):
        return f"MergeSummary(output_path='{self.output_path}', merged_count={self.merged_count}, orphans={len(self.orphans)})"


def merge_to_file(base_path: str, target_path: str, output_path: str, show_progress: bool = False):
    """
    Merges the target strings file into the base global.ini and writes the
    result (UTF-8 with BOM) to output_path.
    Returns a MergeSummary, or None when an input is missing or unreadable,
    or the write fails; in that case output_path is left untouched.
    """
    print(f"INFO: Merging {os.path.basename(target_path)} into {base_path}")
    try:
        base_text = read_ini_text(base_path)
    except FileNotFoundError:
        print(f"ERROR: Base global.ini not found: {base_path}")
        return None
    except UnicodeDecodeError as e:
        print(f"ERROR: Base global.ini is not valid UTF-8: {base_path} ({e})")
        return None
    try:
        overrides, _ = read_target_file(target_path)
    except FileNotFoundError:
        print(f"ERROR: Target strings file not found: {target_path}")
        return None
    except UnicodeDecodeError as e:
        print(f"ERROR: Target strings file is not valid UTF-8: {target_path} ({e})")
        return None

    if not overrides:
        print(f"WARNING: {os.path.basename(target_path)} contains no key=value entries.")

    result = merge_lines(base_text, overrides, show_progress=show_progress)
    orphans = find_orphans(overrides, result.merged_keys)

    try:
        write_ini_lines(output_path, result.lines, trailing_newline=result.trailing_newline)
    except OSError as e:
        print(f"ERROR: Could not write merged file {output_path}: {e}")
        return None

    print(f"INFO: Merged {result.merged_count} of {len(overrides)} custom strings into {output_path}")
    if orphans:
        print(f"WARNING: {len(orphans)} custom string(s) no longer exist in global.ini:")
        for key in orphans:
            print(f"  - {key}")
    return MergeSummary(output_path, result.merged_count, orphans)

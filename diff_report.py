import os

import pandas as pd

from diff_strings import DiffResult

SHEET_ADDED = "Added"
SHEET_REMOVED = "Removed"
SHEET_CHANGED = "Changed"
SHEET_CONFLICTS = "Conflicts"
SHEET_REMOVED_WITH_OVERRIDE = "RemovedWithOverride"


def diff_to_frames(result: DiffResult) -> dict:
    """Builds one DataFrame per non-empty category, keyed by sheet name, rows in table order."""
    frames = {}
    if result.added:
        frames[SHEET_ADDED] = pd.DataFrame(
            [{"Key": key, "New": value} for key, value in result.added.items()],
            columns=["Key", "New"])
    if result.removed:
        frames[SHEET_REMOVED] = pd.DataFrame(
            [{"Key": key, "Old": value} for key, value in result.removed.items()],
            columns=["Key", "Old"])
    if result.changed:
        frames[SHEET_CHANGED] = pd.DataFrame(
            [{"Key": key, "Old": entry["old"], "New": entry["new"]} for key, entry in result.changed.items()],
            columns=["Key", "Old", "New"])
    if result.conflicts:
        frames[SHEET_CONFLICTS] = pd.DataFrame(
            [{"Key": key, "Old": entry["old"], "New": entry["new"], "Override": entry["override"]}
             for key, entry in result.conflicts.items()],
            columns=["Key", "Old", "New", "Override"])
    if result.removed_with_override:
        frames[SHEET_REMOVED_WITH_OVERRIDE] = pd.DataFrame(
            [{"Key": key, "Override": entry["override"]} for key, entry in result.removed_with_override.items()],
            columns=["Key", "Override"])
    return frames


def export_diff_report(result: DiffResult, output_path: str) -> bool:
    """Writes the diff to an .xlsx workbook, one sheet per category. Returns False on failure."""
    frames = diff_to_frames(result)
    if not frames:
        print("INFO: No string changes to export.")
        return True

    try:
        os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
        with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
            for sheet_name, df in frames.items():
                df.to_excel(writer, sheet_name=sheet_name, index=False)
    except (OSError, ValueError) as e:
        print(f"ERROR: Could not write diff report to {output_path}: {e}")
        return False

    print(f"INFO: Diff report saved to: {output_path}")
    for sheet_name, df in frames.items():
        print(f"  {sheet_name}: {len(df)} row(s)")
    return True

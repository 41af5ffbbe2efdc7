import argparse
import json
import os
import sys
from datetime import datetime

from diff_report import export_diff_report
from diff_strings import compare_tables, find_stale_overrides, print_diff_report, print_override_warnings
from extract_strings import extract_global_ini
from global_ini import read_ini_file
from merge_strings import find_orphans, merge_to_file
from snapshot_cache import find_snapshot, latest_snapshot, list_snapshots, load_snapshot, save_snapshot
from target_strings import add_target_keys, ensure_target_file, read_target_file
from user_settings import SETTINGS_FIELDS, USER_CFG_ERROR, Workspace, ensure_user_cfg, parse_bool

BROWSE_DEFAULT_LIMIT = 50


def default_version_label() -> str:
    return datetime.now().strftime("build_%Y%m%d_%H%M%S")


def load_overrides(workspace: Workspace):
    """
    Returns (overrides, originals). A missing target file gives empty dicts,
    one that is not UTF-8 gives None.
    """
    try:
        return read_target_file(workspace.target_path)
    except FileNotFoundError:
        print(f"WARNING: Target strings file not found: {workspace.target_path}. Treating as empty.")
        return {}, {}
    except UnicodeDecodeError as e:
        print(f"ERROR: Target strings file is not valid UTF-8: {workspace.target_path} ({e})")
        return None


# --- Workflows ---

def run_merge(workspace: Workspace, environment: str = None, show_progress: bool = False) -> bool:
    ok = True
    for env in workspace.resolve_environments(environment):
        print(f"\n--- Merging custom strings for {env} ---")
        summary = merge_to_file(workspace.source_ini_path(env), workspace.target_path,
                                workspace.output_ini_path(env), show_progress=show_progress)
        if summary is None:
            print(f"ERROR: Merge failed for {env}. No output was written.")
            ok = False
            continue

        cfg_path = workspace.user_cfg_path(env)
        status = ensure_user_cfg(cfg_path, workspace.settings.language)
        if status == USER_CFG_ERROR:
            print(f"WARNING: Could not set g_language in {cfg_path}. The game may not load the custom strings.")
        else:
            print(f"INFO: {os.path.basename(cfg_path)}: {status}")
    return ok


def run_extract(workspace: Workspace, environment: str = None, version_label: str = None) -> bool:
    label = version_label or default_version_label()
    for env in workspace.resolve_environments(environment):
        print(f"\n--- Extracting global.ini for {env} ---")
        extracted_path = extract_global_ini(workspace, env)
        if extracted_path is None:
            print("ERROR: Process halted due to extraction failure.")
            return False
        save_snapshot(workspace.cache_dir, label, env, extracted_path)
    return True


def run_patch_update(workspace: Workspace, environment: str = None, version_label: str = None,
                     export_report: bool = False, show_progress: bool = False) -> bool:
    """
    After a game patch: extract the new global.ini, compare it with the
    newest older snapshot, report conflicts with custom strings, cache the new
    version and re-merge when autoWrite is enabled.
    """
    label = version_label or default_version_label()
    loaded = load_overrides(workspace)
    if loaded is None:
        return False
    overrides, originals = loaded

    for env in workspace.resolve_environments(environment):
        print(f"\n--- Step 1: Extracting {env} global.ini ---")
        new_path = extract_global_ini(workspace, env)
        if new_path is None:
            print("ERROR: Process halted. No merge attempted.")
            return False
        try:
            new_table = read_ini_file(new_path)
        except UnicodeDecodeError as e:
            print(f"ERROR: Extracted global.ini is not valid UTF-8: {new_path} ({e})")
            print("ERROR: Process halted. No merge attempted.")
            return False

        print(f"\n--- Step 2: Comparing {env} against the previous version ---")
        previous = latest_snapshot(workspace.cache_dir, env, exclude_version=label)
        orphans = find_orphans(overrides, new_table)
        stale = find_stale_overrides(new_table, overrides, originals)
        result = None
        if previous is None:
            print(f"INFO: No cached snapshot for {env}. Skipping version comparison.")
            print_override_warnings(orphans=orphans, stale=stale)
        else:
            print(f"INFO: Previous version: {previous.display_name}")
            try:
                old_table = load_snapshot(previous)
            except UnicodeDecodeError as e:
                print(f"ERROR: Cached snapshot {previous.path} is not valid UTF-8 ({e})")
                return False
            result = compare_tables(old_table, new_table, overrides)
            print_diff_report(result, orphans=orphans, stale=stale)
            if export_report and result.has_changes:
                report_path = os.path.join(workspace.reports_dir,
                                           f"diff_{previous.version_label}_to_{label}_{env}.xlsx")
                export_diff_report(result, report_path)

        print(f"\n--- Step 3: Caching {env} snapshot ---")
        save_snapshot(workspace.cache_dir, label, env, new_path)

        print(f"\n--- Step 4: Updating merged global.ini for {env} ---")
        if not workspace.settings.auto_write:
            print("INFO: autoWrite is off. Run with --merge to apply custom strings to the new version.")
            continue
        if result is not None and not result.has_changes and os.path.exists(workspace.output_ini_path(env)):
            print("INFO: No string changes. Merged file is already current.")
            continue
        if not run_merge(workspace, env, show_progress=show_progress):
            return False

    workspace.settings.last_build_version = label
    try:
        workspace.save()
    except OSError as e:
        print(f"ERROR: Could not save settings: {e}")
        return False
    return True


def run_diff(workspace: Workspace, old_label: str = None, new_label: str = None, environment: str = None,
             export_path: str = None) -> bool:
    env = workspace.resolve_environments(environment)[0]
    if old_label and new_label:
        old_snapshot = find_snapshot(workspace.cache_dir, old_label, env)
        new_snapshot = find_snapshot(workspace.cache_dir, new_label, env)
        if old_snapshot is None or new_snapshot is None:
            missing = old_label if old_snapshot is None else new_label
            print(f"ERROR: No cached snapshot '{missing}' for {env}.")
            return False
    else:
        snapshots = list_snapshots(workspace.cache_dir, env)
        if len(snapshots) < 2:
            print(f"ERROR: Need at least two cached snapshots for {env}, found {len(snapshots)}.")
            return False
        new_snapshot, old_snapshot = snapshots[0], snapshots[1]

    print(f"INFO: Comparing {old_snapshot.display_name} -> {new_snapshot.display_name}")
    loaded = load_overrides(workspace)
    if loaded is None:
        return False
    overrides, _ = loaded
    try:
        new_table = load_snapshot(new_snapshot)
        old_table = load_snapshot(old_snapshot)
    except UnicodeDecodeError as e:
        print(f"ERROR: Cached snapshot is not valid UTF-8 ({e})")
        return False
    result = compare_tables(old_table, new_table, overrides)
    print_diff_report(result, orphans=find_orphans(overrides, new_table))
    if export_path:
        return export_diff_report(result, export_path)
    return True


def search_strings(table: dict, term: str, overrides: dict = None, limit: int = BROWSE_DEFAULT_LIMIT) -> list:
    """Case-insensitive search over keys and values. Returns (key, value, is_overridden) tuples in table order."""
    overrides = overrides or {}
    needle = term.lower()
    matches = []
    for key, value in table.items():
        if needle in key.lower() or needle in value.lower():
            matches.append((key, value, key in overrides))
            if limit and len(matches) >= limit:
                break
    return matches


def run_browse(workspace: Workspace, term: str, environment: str = None, limit: int = BROWSE_DEFAULT_LIMIT) -> bool:
    env = workspace.resolve_environments(environment)[0]
    try:
        table = read_ini_file(workspace.source_ini_path(env))
    except FileNotFoundError:
        print(f"ERROR: No extracted global.ini for {env}. Run --extract first.")
        return False
    except UnicodeDecodeError as e:
        print(f"ERROR: Extracted global.ini for {env} is not valid UTF-8 ({e})")
        return False
    loaded = load_overrides(workspace)
    if loaded is None:
        return False
    overrides, _ = loaded
    matches = search_strings(table, term, overrides, limit)
    print(f"INFO: {len(matches)} match(es) for '{term}' in {env} global.ini" + (" (limit reached)" if len(matches) == limit else ""))
    for key, value, is_overridden in matches:
        marker = "*" if is_overridden else " "
        print(f" {marker} {key}={value}")
        if is_overridden:
            print(f"     -> {overrides[key]}")
    return True


def parse_setting_value(field: str, raw: str):
    raw = raw.strip()
    if field == "environments":
        environments = [env.strip().upper() for env in raw.split(',') if env.strip()]
        if not environments:
            raise ValueError("environments needs at least one environment, e.g. LIVE or LIVE,PTU")
        return environments
    if field == "autoWrite":
        return parse_bool(raw, field)
    if raw.lower() in ("", "null", "none"):
        return None
    return raw


def run_settings(workspace: Workspace, assignments=None) -> bool:
    if not assignments:
        print(json.dumps(workspace.settings.to_dict(), indent=4, ensure_ascii=False))
        return True
    for assignment in assignments:
        field, sep, raw_value = assignment.partition('=')
        field = field.strip()
        if not sep or field not in SETTINGS_FIELDS:
            print(f"ERROR: Unknown setting '{assignment}'. Known settings: {', '.join(SETTINGS_FIELDS)}")
            return False
        try:
            value = parse_setting_value(field, raw_value)
        except ValueError as e:
            print(f"ERROR: {e}")
            return False
        setattr(workspace.settings, SETTINGS_FIELDS[field], value)
        print(f"INFO: {field} = {value!r}")
    try:
        workspace.save()
    except OSError as e:
        print(f"ERROR: Could not save settings to {workspace.settings_path}: {e}")
        return False
    return True


def run_add_keys(workspace: Workspace, keys, environment: str = None) -> bool:
    env = workspace.resolve_environments(environment)[0]
    return add_target_keys(workspace, env, keys) is not None


def run_auto(workspace: Workspace, environment: str = None, show_progress: bool = False) -> bool:
    """Default workflow: make sure a base global.ini exists for each environment, then merge."""
    if ensure_target_file(workspace.target_path):
        print("INFO: Add your custom strings to the new target file and run again.")
    for env in workspace.resolve_environments(environment):
        if not os.path.exists(workspace.source_ini_path(env)):
            print(f"INFO: No extracted global.ini for {env}. Extracting first.")
            if not run_extract(workspace, env):
                return False
    return run_merge(workspace, environment, show_progress=show_progress)


MENU_OPTIONS = [
    ("1", "Merge custom strings"),
    ("2", "Patch update (extract, compare, cache)"),
    ("3", "Extract global.ini"),
    ("4", "Compare the two newest snapshots"),
    ("5", "Browse strings"),
    ("6", "Add keys to target strings"),
    ("7", "Show settings"),
    ("0", "Exit"),
]


def run_interactive(workspace: Workspace, environment: str = None, input_func=input) -> bool:
    ok = True
    while True:
        print("\n--- Menu ---")
        for choice, label in MENU_OPTIONS:
            print(f"  {choice}) {label}")
        try:
            choice = input_func("Select: ").strip()
        except EOFError:
            break
        if choice == "0":
            break
        elif choice == "1":
            ok = run_merge(workspace, environment, show_progress=True)
        elif choice == "2":
            ok = run_patch_update(workspace, environment, show_progress=True)
        elif choice == "3":
            ok = run_extract(workspace, environment)
        elif choice == "4":
            ok = run_diff(workspace, environment=environment)
        elif choice == "5":
            term = input_func("Search for: ").strip()
            ok = run_browse(workspace, term, environment) if term else ok
        elif choice == "6":
            keys = input_func("Keys (space separated): ").split()
            ok = run_add_keys(workspace, keys, environment) if keys else ok
        elif choice == "7":
            ok = run_settings(workspace)
        else:
            print(f"WARNING: Unknown option '{choice}'.")
    return ok


# --- CLI ---

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Merge custom strings into the game's global.ini and track changes across patches.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--menu", action="store_true", help="Interactive menu")
    mode.add_argument("--merge", action="store_true", help="Merge target strings into global.ini")
    mode.add_argument("--patch-update", action="store_true", help="Extract, compare with the last snapshot and cache")
    mode.add_argument("--extract", action="store_true", help="Extract global.ini from Data.p4k with unp4k")
    mode.add_argument("--diff", action="store_true", help="Compare two cached snapshots")
    mode.add_argument("--browse", metavar="TERM", help="Search keys and values in global.ini")
    mode.add_argument("--add-keys", nargs="+", metavar="KEY", help="Copy keys from global.ini into target strings")
    mode.add_argument("--settings", nargs="*", metavar="FIELD=VALUE", help="Show settings, or set fields")
    parser.add_argument("--env", help="Use this environment (LIVE, PTU, EPTU) instead of the configured ones")
    parser.add_argument("--root", default=os.getcwd(), help="Working directory holding config.json and target strings")
    parser.add_argument("--version-label", help="Build label used for cached snapshots")
    parser.add_argument("--old", help="Old snapshot label for --diff")
    parser.add_argument("--new", help="New snapshot label for --diff")
    parser.add_argument("--export", metavar="XLSX", help="Write the --diff result to a spreadsheet")
    parser.add_argument("--report", action="store_true", help="Export an .xlsx report during --patch-update")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        workspace = Workspace.load(args.root)
    except (OSError, ValueError) as e:
        print(f"ERROR: Could not load settings from {args.root}: {e}")
        return 1

    if args.menu:
        ok = run_interactive(workspace, args.env)
    elif args.merge:
        ok = run_merge(workspace, args.env, show_progress=True)
    elif args.patch_update:
        ok = run_patch_update(workspace, args.env, args.version_label, export_report=args.report, show_progress=True)
    elif args.extract:
        ok = run_extract(workspace, args.env, args.version_label)
    elif args.diff:
        ok = run_diff(workspace, args.old, args.new, args.env, args.export)
    elif args.browse is not None:
        ok = run_browse(workspace, args.browse, args.env)
    elif args.add_keys:
        ok = run_add_keys(workspace, args.add_keys, args.env)
    elif args.settings is not None:
        ok = run_settings(workspace, args.settings)
    else:
        ok = run_auto(workspace, args.env, show_progress=True)
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())

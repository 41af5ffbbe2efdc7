CATEGORY_ADDED = "added"
CATEGORY_REMOVED = "removed"
CATEGORY_CHANGED = "changed"
CATEGORY_CONFLICTS = "conflicts"
CATEGORY_REMOVED_WITH_OVERRIDE = "removed_with_override"


class DiffResult:
    """
    Key-level comparison of two global.ini versions.

    added:                 key -> new value
    removed:               key -> old value
    changed:               key -> {"old": ..., "new": ...}
    conflicts:             key -> {"old": ..., "new": ..., "override": ...}, a subset of changed
    removed_with_override: key -> {"override": ...}, a subset of removed

    Each dict iterates in the order keys appear in their source table.
    """

    def __init__(self):
        self.added = {}
        self.removed = {}
        self.changed = {}
        self.conflicts = {}
        self.removed_with_override = {}
        self.unchanged_count = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.changed)

    @property
    def needs_attention(self) -> bool:
        return bool(self.conflicts or self.removed_with_override)

    def summary(self) -> dict:
        return {
            CATEGORY_ADDED: len(self.added),
            CATEGORY_REMOVED: len(self.removed),
            CATEGORY_CHANGED: len(self.changed),
            CATEGORY_CONFLICTS: len(self.conflicts),
            CATEGORY_REMOVED_WITH_OVERRIDE: len(self.removed_with_override),
            "unchanged": self.unchanged_count,
        }

    def __repr__(self):
        counts = ", ".join(f"{name}={count}" for name, count in self.summary().items())
        return f"DiffResult({counts})"


def compare_tables(old_table: dict, new_table: dict, overrides: dict) -> DiffResult:
    """
    Classifies every key of two string tables against the user's overrides.
    overrides maps key -> override value; its keys are the override set.
    Neither input is modified.
    """
    result = DiffResult()

    for key, new_value in new_table.items():
        if key not in old_table:
            result.added[key] = new_value
            continue
        old_value = old_table[key]
        if old_value == new_value:
            result.unchanged_count += 1
            continue
        result.changed[key] = {"old": old_value, "new": new_value}
        if key in overrides:
            result.conflicts[key] = {"old": old_value, "new": new_value, "override": overrides[key]}

    for key, old_value in old_table.items():
        if key in new_table:
            continue
        result.removed[key] = old_value
        if key in overrides:
            result.removed_with_override[key] = {"override": overrides[key]}

    return result


def find_stale_overrides(base_table: dict, overrides: dict, originals: dict) -> dict:
    """
    Overrides whose recorded '@original' text no longer matches the game's
    current text. Keys without a recorded original, or missing from the base
    table (orphans), are not reported here.
    Returns key -> {"original": ..., "current": ..., "override": ...}.
    """
    stale = {}
    for key, override_value in overrides.items():
        if key not in originals or key not in base_table:
            continue
        if originals[key] != base_table[key]:
            stale[key] = {"original": originals[key], "current": base_table[key], "override": override_value}
    return stale


def _preview(text, max_len=80):
    text = text.replace('\n', '\\n')
    return text if len(text) <= max_len else text[:max_len - 3] + "..."


def print_diff_report(result: DiffResult, orphans=None, stale=None, limit: int = 20):
    print("\n--- String changes ---")
    for name, count in result.summary().items():
        print(f"  {name.replace('_', ' ').capitalize()}: {count}")

    if not result.has_changes:
        print("INFO: No string changes between the two versions.")

    if result.conflicts:
        print(f"\nWARNING: {len(result.conflicts)} customized string(s) were changed by the update:")
        for i, (key, entry) in enumerate(result.conflicts.items()):
            if i >= limit:
                print(f"  ... and {len(result.conflicts) - limit} more")
                break
            print(f"  {key}")
            print(f"    old:      {_preview(entry['old'])}")
            print(f"    new:      {_preview(entry['new'])}")
            print(f"    override: {_preview(entry['override'])}")

    if result.removed_with_override:
        print(f"\nWARNING: {len(result.removed_with_override)} customized string(s) were removed by the update:")
        for i, key in enumerate(result.removed_with_override):
            if i >= limit:
                print(f"  ... and {len(result.removed_with_override) - limit} more")
                break
            print(f"  - {key}")

    print_override_warnings(orphans=orphans, stale=stale, limit=limit)


def print_override_warnings(orphans=None, stale=None, limit: int = 20):
    if stale:
        print(f"\nWARNING: {len(stale)} custom string(s) were written against different game text:")
        for i, (key, entry) in enumerate(stale.items()):
            if i >= limit:
                print(f"  ... and {len(stale) - limit} more")
                break
            print(f"  {key}")
            print(f"    recorded: {_preview(entry['original'])}")
            print(f"    current:  {_preview(entry['current'])}")

    if orphans:
        print(f"\nWARNING: {len(orphans)} custom string(s) have no matching key in global.ini:")
        for key in orphans[:limit]:
            print(f"  - {key}")
        if len(orphans) > limit:
            print(f"  ... and {len(orphans) - limit} more")
